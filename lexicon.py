"""
Memoir Category Lexicon
=======================

Static taxonomy of personal-fact categories and the representative keywords
used to classify free text into them. Every other stage of the pipeline
(rule tables, contextual classification, suggestion triggers) relies on the
matching helpers defined here so that keyword detection behaves the same way
everywhere.

Keyword matching is case-insensitive and anchored at the start of a word:
"appelle" matches "m'appelle", "ans" matches "29 ans" but not "dans".
"""

import re
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Category(Enum):
    IDENTITY = "identité"
    LOCATION = "localisation"
    PROFESSION = "profession"
    PREFERENCES = "préférences"
    RELATIONS = "relations"
    HABITS = "habitudes"
    HEALTH = "santé"
    HOBBIES = "loisirs"
    TRAVEL = "voyages"
    PERSONALITY = "personnalité"
    GENERAL = "général"   # Fallback, carries no keywords

    @classmethod
    def coerce(cls, value) -> Optional["Category"]:
        """Return the Category for an enum member or its string value, None if unknown."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


# Order matters: ties in infer_category() resolve to the earliest category.
CATEGORY_KEYWORDS: Dict[Category, Tuple[str, ...]] = {
    Category.IDENTITY: ("nom", "prénom", "appelle", "âge", "ans", "né", "naissance", "anniversaire"),
    Category.LOCATION: ("habite", "vis", "ville", "quartier", "région", "pays", "adresse", "déménagé"),
    Category.PROFESSION: (
        "travaille", "métier", "profession", "job", "bosse", "entreprise",
        "étude", "étudiant", "école", "boulot", "collègue",
    ),
    Category.PREFERENCES: ("aime", "adore", "déteste", "préfère", "favori", "favorite", "goût"),
    Category.RELATIONS: (
        "mari", "femme", "enfant", "fils", "fille", "parent", "famille",
        "conjoint", "ami", "copain", "copine",
    ),
    Category.HABITS: ("habitude", "routine", "tous les", "chaque", "emploi du temps", "souvent", "toujours"),
    Category.HEALTH: ("allergie", "allergique", "médicament", "traitement", "santé", "maladie", "régime"),
    Category.HOBBIES: ("passion", "hobby", "sport", "joue", "pratique", "loisir", "lecture", "musique"),
    Category.TRAVEL: ("voyage", "vacances", "étranger", "visité", "séjour"),
    Category.PERSONALITY: ("personnalité", "caractère", "tempérament", "timide", "introverti", "extraverti"),
    Category.GENERAL: (),
}

# ---------------------------------------------------------------------------
# Shared regex fragments for rule tables
# ---------------------------------------------------------------------------

LETTER = r"A-Za-zÀ-ÖØ-öø-ÿ"
WORD = rf"[{LETTER}][{LETTER}'\-]*"

# Words that end a captured phrase ("j'habite à Lyon depuis 2 ans" -> "Lyon").
CONNECTORS = (
    "et", "mais", "depuis", "car", "donc", "parce", "avec", "quand",
    "puis", "ou", "où", "pour", "si", "alors", "comme", "je",
)

NAME = rf"({WORD})"
PHRASE_BODY = rf"{WORD}(?:\s+(?!(?:{'|'.join(CONNECTORS)})\b|j'){WORD})*"
PHRASE = rf"({PHRASE_BODY})"

_APOSTROPHES = re.compile(r"[’‘`´]")
_WHITESPACE = re.compile(r"\s+")
_keyword_cache: Dict[str, "re.Pattern"] = {}


def normalize_text(text) -> str:
    """Trim, unify apostrophes and collapse whitespace. Non-strings become ''."""
    if not isinstance(text, str):
        return ""
    text = _APOSTROPHES.sub("'", text)
    return _WHITESPACE.sub(" ", text).strip()


def _keyword_pattern(keyword: str) -> "re.Pattern":
    pattern = _keyword_cache.get(keyword)
    if pattern is None:
        pattern = re.compile(r"(?<!\w)" + re.escape(keyword.lower()), re.IGNORECASE)
        _keyword_cache[keyword] = pattern
    return pattern


def contains_keyword(text: str, keyword: str) -> bool:
    """True if keyword starts a word somewhere in text (case-insensitive)."""
    if not text or not keyword:
        return False
    return _keyword_pattern(keyword).search(text) is not None


def find_keywords(text: str, keywords) -> List[str]:
    """Keywords from the given iterable that occur in text, in iteration order."""
    return [kw for kw in keywords if contains_keyword(text, kw)]


def match_keywords(text: str, category: Category) -> List[str]:
    """Lexicon keywords of a category present in text."""
    return find_keywords(text, CATEGORY_KEYWORDS.get(category, ()))


def category_scores(text: str) -> Dict[Category, int]:
    """Number of keyword hits per category, only categories with hits."""
    scores = {}
    for category in CATEGORY_KEYWORDS:
        hits = len(match_keywords(text, category))
        if hits:
            scores[category] = hits
    return scores


def infer_category(text: str) -> Category:
    """Category with the most keyword hits, GENERAL when nothing matches."""
    best_category = Category.GENERAL
    best_score = 0
    for category, score in category_scores(text).items():
        if score > best_score:
            best_category, best_score = category, score
    return best_category
