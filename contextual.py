"""
Memoir Contextual Classifier
============================

Second-line detection for utterances the rule table does not understand,
and detection of *how* an utterance relates to what was said before.

Two independent passes:
- Lexicon pass: scores the utterance against the category lexicon and emits
  one weak candidate per category with keyword hits.
- Linguistic pass: trigger phrases ("en fait", "maintenant", "donc",
  "d'ailleurs", ...) reveal corrections, updates, additions and inferences.
  Each pattern produces at most one candidate tagged with its change type.

Corrections pass a coherence gate: something of the same category must
already be in memory, otherwise there is nothing to correct.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Callable, Tuple

from lexicon import Category, CATEGORY_KEYWORDS, match_keywords, infer_category, normalize_text
from extractor import CandidateFact, FactSource, StoredFact, as_stored_facts

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 3


@dataclass
class ConversationContext:
    """What the transport layer knows about the conversation so far."""
    previous_messages: List[str] = field(default_factory=list)
    current_topic: Optional[str] = None
    user_mood: Optional[str] = None
    time_of_day: Optional[str] = None


@dataclass
class ChangePattern:
    """A trigger phrase family revealing a type of contextual change."""
    name: str
    source: FactSource
    pattern: "re.Pattern"
    priority: int
    confidence: float


def _compile(source: str) -> "re.Pattern":
    return re.compile(source, re.IGNORECASE)


# Highest priority first; equal priorities keep table order.
CHANGE_PATTERNS: List[ChangePattern] = [
    ChangePattern(
        name="correction",
        source=FactSource.CORRECTION,
        pattern=_compile(
            r"\b(?:non|en fait|en réalité|je me suis trompée?|correction|plutôt|au contraire)\b,?\s*(.+)"
        ),
        priority=10,
        confidence=0.9,
    ),
    ChangePattern(
        name="before_after",
        source=FactSource.CORRECTION,
        pattern=_compile(
            r"\b(?:avant|précédemment|auparavant)\s+(.+?),?\s*\b(?:mais|maintenant|désormais|aujourd'hui)\s+(.+)"
        ),
        priority=9,
        confidence=0.85,
    ),
    ChangePattern(
        name="update",
        source=FactSource.UPDATE,
        pattern=_compile(r"\b(?:maintenant|désormais|depuis|à partir de|dorénavant)\s+(.+)"),
        priority=8,
        confidence=0.8,
    ),
    ChangePattern(
        name="life_change",
        source=FactSource.UPDATE,
        pattern=_compile(r"\b(?:j'ai changé|j'ai déménagé|j'ai quitté|j'ai commencé|j'ai arrêté)\s+(.+)"),
        priority=8,
        confidence=0.85,
    ),
    ChangePattern(
        name="addition",
        source=FactSource.ADDITION,
        pattern=_compile(r"\b(?:d'ailleurs|en plus|aussi|également|de plus|par ailleurs)\s+(.+)"),
        priority=7,
        confidence=0.75,
    ),
    ChangePattern(
        name="inference",
        source=FactSource.INFERENCE,
        pattern=_compile(
            r"\b(?:donc|alors|cela veut dire que|ça veut dire que|cela signifie que|ça signifie que"
            r"|par conséquent)\s+(.+)"
        ),
        priority=6,
        confidence=0.7,
    ),
    ChangePattern(
        name="causal_inference",
        source=FactSource.INFERENCE,
        pattern=_compile(r"\b(?:puisque|étant donné que|vu que|comme)\s+(.+)"),
        priority=6,
        confidence=0.6,
    ),
]

CORRECTION_TYPES = {FactSource.CORRECTION}

LEXICON_BASE = 0.5
LEXICON_STEP = 0.1
LEXICON_MAX = 0.8
TOPIC_BOOST = 0.15
TOPIC_MAX = 0.9


def infer_category_from_life_change(change_text: str) -> Category:
    """Category implied by a life-change verb phrase ("j'ai déménagé ...")."""
    lower = change_text.lower()
    if "déménagé" in lower:
        return Category.LOCATION
    if "changé" in lower and "job" in lower:
        return Category.PROFESSION
    if "quitté" in lower or "commencé" in lower:
        return Category.PROFESSION
    if "arrêté" in lower:
        return Category.HABITS
    return Category.GENERAL


class ContextualClassifier:
    """Lexicon- and trigger-phrase-based classification of an utterance."""

    def __init__(self, config: Optional[Dict] = None, patterns: Optional[List[ChangePattern]] = None):
        self.config = config or {}
        self.history_window = self.config.get("history_window", HISTORY_WINDOW)
        self.patterns = sorted(patterns or CHANGE_PATTERNS, key=lambda p: -p.priority)
        self._handlers: Dict[str, Callable[..., Optional[CandidateFact]]] = {
            "correction": self._handle_correction,
            "before_after": self._handle_before_after,
            "update": self._handle_update,
            "life_change": self._handle_life_change,
            "addition": self._handle_addition,
            "inference": self._handle_inference,
            "causal_inference": self._handle_causal_inference,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def classify_by_context(self, text: str, context: Optional[ConversationContext] = None,
                            existing_memory=None) -> List[CandidateFact]:
        """Lexicon pass followed by the linguistic-pattern pass."""
        history = context.previous_messages if context else []
        results = self.classify_by_lexicon(text, context)
        results.extend(self.detect_contextual_changes(text, history, existing_memory))
        return results

    def classify_by_lexicon(self, text: str, context: Optional[ConversationContext] = None) -> List[CandidateFact]:
        """One candidate per category whose keywords appear in the text."""
        text = normalize_text(text)
        if not text:
            return []

        topic = (context.current_topic or "").lower() if context else ""
        results = []
        for category in CATEGORY_KEYWORDS:
            keywords = match_keywords(text, category)
            if not keywords:
                continue

            confidence = min(LEXICON_MAX, LEXICON_BASE + LEXICON_STEP * len(keywords))
            if topic and category.value in topic:
                confidence = min(TOPIC_MAX, confidence + TOPIC_BOOST)

            results.append(CandidateFact(
                content=text,
                category=category,
                confidence=round(confidence, 2),
                source=FactSource.CONTEXTUAL,
                reasoning=f"Mots-clés {category.value} : {', '.join(keywords)}",
            ))
        return results

    def detect_contextual_changes(self, text: str, history: Optional[List[str]] = None,
                                  existing_memory=None) -> List[CandidateFact]:
        """Corrections, updates, additions and inferences, highest priority first."""
        text = normalize_text(text)
        if not text:
            return []

        history = [normalize_text(h) for h in (history or []) if normalize_text(h)]
        memory = as_stored_facts(existing_memory)

        changes = []
        for pattern in self.patterns:
            match = pattern.pattern.search(text)
            if match is None:
                continue
            handler = self._handlers.get(pattern.name)
            if handler is None:
                logger.warning(f"No handler for change pattern '{pattern.name}'")
                continue
            change = handler(match, history, pattern)
            if change is None:
                continue
            if not self.validate_change_coherence(change, memory):
                logger.debug(f"Dropping incoherent {change.source.value}: {change.content}")
                continue
            changes.append(change)
        return changes

    def validate_change_coherence(self, change: CandidateFact, memory: List[StoredFact]) -> bool:
        """A correction is only valid if memory already holds a fact of its category."""
        if change.source in CORRECTION_TYPES:
            return any(fact.category == change.category for fact in memory)
        return True

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_correction(self, match, history, pattern) -> Optional[CandidateFact]:
        correction = match.group(1).strip()
        if not correction:
            return None
        category = infer_category(correction)
        old_content = self._find_previous_assertion(history, category)
        return CandidateFact(
            content=correction,
            category=category,
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Correction explicite détectée : \"{correction}\"",
            old_content=old_content,
        )

    def _handle_before_after(self, match, history, pattern) -> Optional[CandidateFact]:
        before = match.group(1).strip()
        after = match.group(2).strip()
        if not after:
            return None
        category = infer_category(after)
        return CandidateFact(
            content=after,
            category=category,
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Changement temporel détecté : \"{before}\" → \"{after}\"",
            old_content=before or None,
        )

    def _handle_update(self, match, history, pattern) -> Optional[CandidateFact]:
        update = match.group(1).strip()
        if not update:
            return None
        return CandidateFact(
            content=update,
            category=infer_category(update),
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Mise à jour détectée : \"{update}\"",
        )

    def _handle_life_change(self, match, history, pattern) -> Optional[CandidateFact]:
        change = match.group(1).strip()
        if not change:
            return None
        return CandidateFact(
            content=change,
            category=infer_category_from_life_change(match.group(0)),
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Changement de vie détecté : \"{match.group(0).strip()}\"",
        )

    def _handle_addition(self, match, history, pattern) -> Optional[CandidateFact]:
        addition = match.group(1).strip()
        if not addition:
            return None
        return CandidateFact(
            content=addition,
            category=infer_category(addition),
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Information complémentaire : \"{addition}\"",
        )

    def _handle_inference(self, match, history, pattern) -> Optional[CandidateFact]:
        inference = match.group(1).strip()
        if not inference:
            return None
        return CandidateFact(
            content=inference,
            category=infer_category(inference),
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Inférence logique : \"{inference}\"",
        )

    def _handle_causal_inference(self, match, history, pattern) -> Optional[CandidateFact]:
        clause = match.group(1).strip()
        if not clause:
            return None
        cause, effect = self._split_cause_effect(clause)
        return CandidateFact(
            content=effect or cause,
            category=infer_category(clause),
            confidence=pattern.confidence,
            source=pattern.source,
            reasoning=f"Inférence causale basée sur : \"{cause}\"",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_previous_assertion(self, history: List[str], category: Category) -> Optional[str]:
        """Most recent utterance in the window asserting something of the same category.

        Returns None when nothing matches; the caller decides whether such an
        unanchored correction should be treated as an addition.
        """
        if category == Category.GENERAL:
            return None
        for utterance in reversed(history[-self.history_window:]):
            if infer_category(utterance) == category:
                return utterance
        return None

    @staticmethod
    def _split_cause_effect(clause: str) -> Tuple[str, Optional[str]]:
        """'je suis végétarien, je ne mange pas de viande' -> (cause, effect)."""
        if "," not in clause:
            return clause, None
        cause, effect = clause.split(",", 1)
        return cause.strip(), effect.strip() or None
