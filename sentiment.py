"""
Sentiment and intention tagging for utterances.

Keyword-based, deterministic. Used by the pipeline to annotate a turn for the
UI layer; it never influences which facts are extracted.
"""

import re
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keyword dictionaries
# ---------------------------------------------------------------------------

# Whole words only: "aime" never matches "aimerais", "nul" never matches "annuler".
POSITIVE_KEYWORDS = {"adore", "aime", "super", "génial", "parfait", "excellent", "content"}
NEGATIVE_KEYWORDS = {"déteste", "horrible", "nul", "pire", "problème", "difficile"}

REQUEST_MARKERS = ("peux-tu", "pourrais-tu", "peux tu", "pourrais tu", "pouvez-vous", "s'il te plaît")
SELF_DISCLOSURE = re.compile(r"\b(?:je|j')\b.*\b(?:suis|ai)\b|\bj'ai\b", re.IGNORECASE)


def analyze_sentiment(text: str) -> Dict[str, Any]:
    """Classify the sentiment and the intention of an utterance.

    Returns:
        {"sentiment": "positif"|"négatif"|"neutre", "intensity": float (0 to 1),
         "intention": "information"|"question"|"demande"|"confidence"}
    """
    if not isinstance(text, str) or not text.strip():
        return {"sentiment": "neutre", "intensity": 0.0, "intention": "information"}

    lower = text.lower()
    words = set(re.findall(r"\b\w+\b", lower))

    pos_hits = len(words & POSITIVE_KEYWORDS)
    neg_hits = len(words & NEGATIVE_KEYWORDS)

    sentiment = "neutre"
    intensity = 0.0
    if pos_hits > neg_hits:
        sentiment = "positif"
        intensity = pos_hits / len(POSITIVE_KEYWORDS)
    elif neg_hits > pos_hits:
        sentiment = "négatif"
        intensity = neg_hits / len(NEGATIVE_KEYWORDS)

    if "?" in text:
        intention = "question"
    elif any(marker in lower for marker in REQUEST_MARKERS):
        intention = "demande"
    elif SELF_DISCLOSURE.search(lower):
        intention = "confidence"
    else:
        intention = "information"

    return {
        "sentiment": sentiment,
        "intensity": round(intensity, 3),
        "intention": intention,
    }
