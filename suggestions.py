"""
Memoir Suggestion Engine
========================

Proposes follow-up questions that deepen topics raised in the conversation
and fill categories the memory knows nothing about.

- generate_suggestions(): questions triggered by keywords of recent
  utterances, boosted when their category is absent from memory.
- analyze_memory_gaps(): one question per category missing from memory.
- mark_suggestion_used(): records a surfaced/dismissed question so it is not
  proposed again.

A question is never proposed when its content words already appear in a
stored fact (it is considered answered). Content words come from spaCy's
French tokenizer minus French stop words.

The engine is meant to be instantiated per conversation. The used-question
set is its only state; it is bounded and guarded by a lock.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Optional, Any, Set, Iterable

import spacy
from spacy.lang.fr.stop_words import STOP_WORDS as FRENCH_STOP_WORDS

from lexicon import Category, find_keywords, normalize_text
from extractor import StoredFact, as_stored_facts

logger = logging.getLogger(__name__)

# Tokenizer only: deterministic, no statistical model needed
nlp = spacy.blank("fr")

DEFAULT_MAX_SUGGESTIONS = 3
DEFAULT_USED_LIMIT = 100
MISSING_CATEGORY_BONUS = 2
GAP_BONUS = 3
GAP_CONFIDENCE = 0.7
CONTEXTUAL_CONFIDENCE = 0.8

QUESTION_STOPWORDS = {
    "quel", "quelle", "quels", "quelles", "où", "comment", "combien", "depuis",
    "avez", "vous", "êtes", "est", "votre", "vos", "le", "la", "les", "de", "du",
    "des", "à", "au", "aux", "dans", "sur", "pour", "avec", "sans", "que", "qui",
    "qu'est", "ce", "un", "une", "et", "ou", "en", "faites", "vont",
}


@dataclass
class SuggestionRule:
    trigger: List[str]
    category: Category
    questions: List[str]
    priority: int


@dataclass
class Suggestion:
    """A proactive follow-up question."""
    id: str
    question: str
    category: Category
    priority: int
    confidence: float
    context: str

    @property
    def score(self) -> float:
        return self.priority * self.confidence

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        return data


@dataclass
class GapAnalysis:
    missing_categories: List[Category] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing_categories": [c.value for c in self.missing_categories],
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


SUGGESTION_RULES: List[SuggestionRule] = [
    # === IDENTITÉ ===
    SuggestionRule(
        trigger=["appelle", "nom", "prénom"],
        category=Category.IDENTITY,
        questions=[
            "Quel est votre nom de famille ?",
            "Avez-vous un surnom ?",
            "Quel âge avez-vous ?",
            "Quelle est votre date de naissance ?",
        ],
        priority=9,
    ),
    SuggestionRule(
        trigger=["âge", "ans", "vieux", "jeune"],
        category=Category.IDENTITY,
        questions=[
            "Quelle est votre date de naissance exacte ?",
            "Dans quelle ville êtes-vous né(e) ?",
            "Quel est votre signe astrologique ?",
        ],
        priority=7,
    ),

    # === LOCALISATION ===
    SuggestionRule(
        trigger=["habite", "vis", "ville", "quartier"],
        category=Category.LOCATION,
        questions=[
            "Depuis combien de temps habitez-vous là ?",
            "D'où venez-vous originellement ?",
            "Quel est votre quartier préféré ?",
            "Avez-vous déjà vécu ailleurs ?",
        ],
        priority=8,
    ),
    SuggestionRule(
        trigger=["déménagé", "déménager", "nouveau", "nouvel"],
        category=Category.LOCATION,
        questions=[
            "Où habitiez-vous avant ?",
            "Qu'est-ce qui vous a motivé à déménager ?",
            "Comment trouvez-vous votre nouveau quartier ?",
        ],
        priority=8,
    ),

    # === PROFESSION ===
    SuggestionRule(
        trigger=["travaille", "job", "métier", "profession", "boulot"],
        category=Category.PROFESSION,
        questions=[
            "Dans quelle entreprise travaillez-vous ?",
            "Depuis combien de temps exercez-vous ce métier ?",
            "Qu'est-ce qui vous plaît le plus dans votre travail ?",
            "Avez-vous des projets professionnels ?",
        ],
        priority=9,
    ),
    SuggestionRule(
        trigger=["étudiant", "étude", "école", "université"],
        category=Category.PROFESSION,
        questions=[
            "Qu'étudiez-vous exactement ?",
            "Dans quelle école ou université ?",
            "En quelle année êtes-vous ?",
            "Quels sont vos projets après les études ?",
        ],
        priority=8,
    ),

    # === PRÉFÉRENCES ===
    SuggestionRule(
        trigger=["aime", "adore", "préfère", "déteste"],
        category=Category.PREFERENCES,
        questions=[
            "Quels sont vos autres hobbies ?",
            "Quel est votre genre de musique préféré ?",
            "Avez-vous des plats que vous détestez ?",
            "Quel type de films regardez-vous ?",
        ],
        priority=6,
    ),
    SuggestionRule(
        trigger=["cuisine", "manger", "plat", "restaurant"],
        category=Category.PREFERENCES,
        questions=[
            "Cuisinez-vous souvent ?",
            "Quel est votre restaurant préféré ?",
            "Avez-vous des allergies alimentaires ?",
            "Quel type de cuisine préférez-vous ?",
        ],
        priority=7,
    ),

    # === RELATIONS ===
    SuggestionRule(
        trigger=["mari", "femme", "conjoint", "copain", "copine"],
        category=Category.RELATIONS,
        questions=[
            "Depuis combien de temps êtes-vous ensemble ?",
            "Où vous êtes-vous rencontrés ?",
            "Avez-vous des enfants ?",
            "Vivez-vous ensemble ?",
        ],
        priority=8,
    ),
    SuggestionRule(
        trigger=["enfant", "fils", "fille", "bébé"],
        category=Category.RELATIONS,
        questions=[
            "Quel âge ont vos enfants ?",
            "Quels sont leurs prénoms ?",
            "Vont-ils à l'école ?",
            "Quelles sont leurs activités préférées ?",
        ],
        priority=9,
    ),

    # === LOISIRS ===
    SuggestionRule(
        trigger=["sport", "joue", "pratique", "entrainement", "entraînement"],
        category=Category.HOBBIES,
        questions=[
            "Depuis combien de temps pratiquez-vous ?",
            "À quelle fréquence vous entraînez-vous ?",
            "Faites-vous de la compétition ?",
            "Quel est votre niveau ?",
        ],
        priority=7,
    ),
    SuggestionRule(
        trigger=["lecture", "livre", "roman", "lire"],
        category=Category.HOBBIES,
        questions=[
            "Quel est votre genre littéraire préféré ?",
            "Qui est votre auteur préféré ?",
            "Combien de livres lisez-vous par an ?",
            "Quel est le dernier livre que vous avez lu ?",
        ],
        priority=6,
    ),

    # === SANTÉ ===
    SuggestionRule(
        trigger=["allergique", "allergie", "médicament", "traitement"],
        category=Category.HEALTH,
        questions=[
            "Avez-vous d'autres allergies ?",
            "Prenez-vous d'autres médicaments ?",
            "Avez-vous des problèmes de santé chroniques ?",
            "Faites-vous du sport pour votre santé ?",
        ],
        priority=8,
    ),

    # === VOYAGES ===
    SuggestionRule(
        trigger=["voyage", "vacances", "pays", "étranger"],
        category=Category.TRAVEL,
        questions=[
            "Quel est votre pays préféré ?",
            "Où aimeriez-vous voyager prochainement ?",
            "Préférez-vous les voyages organisés ou l'aventure ?",
            "Quel a été votre plus beau voyage ?",
        ],
        priority=6,
    ),

    # === HABITUDES ===
    SuggestionRule(
        trigger=["habitude", "routine", "matin", "soir", "week-end"],
        category=Category.HABITS,
        questions=[
            "À quelle heure vous levez-vous en général ?",
            "Comment se passe une journée type pour vous ?",
            "Avez-vous un rituel du week-end ?",
        ],
        priority=6,
    ),

    # === PERSONNALITÉ ===
    SuggestionRule(
        trigger=["caractère", "personnalité", "timide", "calme", "curieux", "curieuse"],
        category=Category.PERSONALITY,
        questions=[
            "Comment vos proches décriraient-ils votre caractère ?",
            "Êtes-vous plutôt introverti ou extraverti ?",
            "Qu'est-ce qui vous motive au quotidien ?",
        ],
        priority=5,
    ),
]


def _words(text: str) -> List[str]:
    """Lowercase word tokens with surrounding hyphens/apostrophes removed."""
    words = []
    for token in nlp(text.lower()):
        if token.is_punct or token.is_space:
            continue
        word = token.text.strip("-'")
        if word:
            words.append(word)
    return words


def question_keywords(question: str) -> Set[str]:
    """Content words of a question: tokens minus stop words and one-letter tokens."""
    return {
        word for word in _words(question)
        if len(word) > 1 and word not in QUESTION_STOPWORDS and word not in FRENCH_STOP_WORDS
    }


class UsedSuggestions:
    """Insertion-ordered set of suggestion ids, safe to share between threads."""

    def __init__(self, limit: int = DEFAULT_USED_LIMIT):
        self.limit = limit
        self._ids: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, suggestion_id: str) -> bool:
        """Mark an id as used. Returns False if it already was (no other effect)."""
        with self._lock:
            if suggestion_id in self._ids:
                return False
            self._ids[suggestion_id] = None
            return True

    def trim(self, limit: Optional[int] = None) -> int:
        """Keep only the most recently added ids. Returns how many were dropped."""
        limit = self.limit if limit is None else limit
        with self._lock:
            dropped = 0
            while len(self._ids) > limit:
                self._ids.popitem(last=False)
                dropped += 1
            return dropped

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._ids)

    def __contains__(self, suggestion_id: str) -> bool:
        with self._lock:
            return suggestion_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class SuggestionEngine:
    """Gap analysis and follow-up question generation for one conversation."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 used: Optional[UsedSuggestions] = None,
                 rules: Optional[List[SuggestionRule]] = None):
        self.config = config or {}
        self.max_suggestions = self.config.get("max_suggestions", DEFAULT_MAX_SUGGESTIONS)
        self.auto_trim = self.config.get("auto_trim", True)
        self.rules = rules or SUGGESTION_RULES
        self.used = used or UsedSuggestions(self.config.get("used_suggestions_limit", DEFAULT_USED_LIMIT))

    @property
    def known_categories(self) -> List[Category]:
        """Categories that own at least one rule, in rule order."""
        categories = []
        for rule in self.rules:
            if rule.category not in categories:
                categories.append(rule.category)
        return categories

    def generate_suggestions(self, recent_utterances, existing_memory=None,
                             max_suggestions: Optional[int] = None) -> List[Suggestion]:
        """Questions triggered by the recent conversation, best first.

        confidence = min(0.9, 0.5 + 0.2 * matched triggers); priority gets
        +2 when the rule's category is absent from memory. Used and already
        answered questions are skipped. Ranked by priority * confidence.
        """
        if max_suggestions is None:
            max_suggestions = self.max_suggestions
        if isinstance(recent_utterances, str):
            recent_utterances = [recent_utterances]

        conversation_text = " ".join(
            normalize_text(u) for u in (recent_utterances or []) if isinstance(u, str)
        ).lower().strip()
        if not conversation_text or max_suggestions <= 0:
            return []

        memory = as_stored_facts(existing_memory)
        covered = self._covered_categories(memory)
        fact_words = [set(_words(fact.content)) for fact in memory if fact.content]

        suggestions = []
        for rule in self.rules:
            matched = find_keywords(conversation_text, rule.trigger)
            if not matched:
                continue

            confidence = round(min(0.9, 0.5 + 0.2 * len(matched)), 2)
            bonus = 0 if rule.category in covered else MISSING_CATEGORY_BONUS

            for question in rule.questions:
                suggestion_id = f"{rule.category.value}-{question}"
                if suggestion_id in self.used:
                    continue
                if self._is_answered(question, fact_words):
                    logger.debug(f"Skipping answered question: {question}")
                    continue

                suggestions.append(Suggestion(
                    id=suggestion_id,
                    question=question,
                    category=rule.category,
                    priority=rule.priority + bonus,
                    confidence=confidence,
                    context=f"Basé sur : \"{', '.join(matched)}\"",
                ))

        suggestions.sort(key=lambda s: s.score, reverse=True)
        return suggestions[:max_suggestions]

    def analyze_memory_gaps(self, existing_memory=None) -> GapAnalysis:
        """One question per known category with no fact in memory, by priority."""
        covered = self._covered_categories(as_stored_facts(existing_memory))
        missing = [c for c in self.known_categories if c not in covered]

        suggestions = []
        for category in missing:
            rule = next(r for r in self.rules if r.category == category)
            if not rule.questions:
                continue
            suggestions.append(Suggestion(
                id=f"gap-{category.value}",
                question=rule.questions[0],
                category=category,
                priority=rule.priority + GAP_BONUS,
                confidence=GAP_CONFIDENCE,
                context=f"Manque d'informations sur : {category.value}",
            ))

        suggestions.sort(key=lambda s: s.priority, reverse=True)
        return GapAnalysis(missing_categories=missing, suggestions=suggestions)

    def generate_contextual_suggestion(self, last_message: str, category) -> Optional[Suggestion]:
        """A single question for a category, if the last message touches it.

        Picks the first question of the category's rules that is neither used
        nor already surfaced, so the result is reproducible.
        """
        category = Category.coerce(category)
        text = normalize_text(last_message)
        if category is None or not text:
            return None

        for rule in self.rules:
            if rule.category != category or not find_keywords(text, rule.trigger):
                continue
            for question in rule.questions:
                suggestion_id = f"contextual-{category.value}-{question}"
                if suggestion_id in self.used or f"{category.value}-{question}" in self.used:
                    continue
                return Suggestion(
                    id=suggestion_id,
                    question=question,
                    category=category,
                    priority=rule.priority,
                    confidence=CONTEXTUAL_CONFIDENCE,
                    context=f"Contexte : \"{text}\"",
                )
        return None

    def mark_suggestion_used(self, suggestion_id: str) -> None:
        """Record a suggestion as surfaced or dismissed. Idempotent."""
        if not suggestion_id:
            return
        if self.used.add(suggestion_id) and self.auto_trim:
            self.used.trim()

    def clean_used_suggestions(self, keep: Optional[int] = None) -> int:
        """Drop the oldest used ids beyond `keep` (default: the configured limit)."""
        dropped = self.used.trim(keep)
        if dropped:
            logger.info(f"Trimmed {dropped} used suggestion id(s)")
        return dropped

    def is_already_answered(self, question: str, existing_memory) -> bool:
        memory = as_stored_facts(existing_memory)
        return self._is_answered(question, [set(_words(f.content)) for f in memory if f.content])

    @staticmethod
    def _is_answered(question: str, fact_words: Iterable[Set[str]]) -> bool:
        keywords = question_keywords(question)
        if not keywords:
            return False
        return any(keywords & words for words in fact_words)

    @staticmethod
    def _covered_categories(memory: List[StoredFact]) -> Set[Category]:
        return {fact.category for fact in memory if fact.category is not None}
