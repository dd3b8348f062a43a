"""
Memoir Consolidation Engine
===========================

Merges the candidates produced for a turn into the list handed to the
memory store. A single pass over the candidates sorted by confidence:

1. candidates at or below the confidence floor are dropped,
2. a candidate too similar (word-level Jaccard) to one already accepted is
   dropped, so near-duplicate phrasings collapse to the most trusted one,
3. survivors keep descending-confidence order.

The engine holds no state between calls.
"""

import logging
from typing import List, Dict, Optional, Tuple, Any

from extractor import CandidateFact

logger = logging.getLogger(__name__)

CONFIDENCE_FLOOR = 0.6
SIMILARITY_THRESHOLD = 0.7


def jaccard_similarity(text1: str, text2: str) -> float:
    """Word-level Jaccard coefficient of two strings (lowercase, whitespace split)."""
    words1 = set((text1 or "").lower().split())
    words2 = set((text2 or "").lower().split())

    if not words1 and not words2:
        return 1.0

    intersection = words1.intersection(words2)
    union = words1.union(words2)

    return len(intersection) / len(union) if union else 0.0


class FactConsolidator:
    """Confidence filtering and near-duplicate removal for candidate facts."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.confidence_floor = self.config.get("confidence_floor", CONFIDENCE_FLOOR)
        self.similarity_threshold = self.config.get("similarity_threshold", SIMILARITY_THRESHOLD)

    def consolidate(self, candidates: List[CandidateFact]) -> List[CandidateFact]:
        """Return accepted candidates, most confident first."""
        accepted, _ = self.consolidate_with_stats(candidates)
        return accepted

    def consolidate_with_stats(self, candidates: List[CandidateFact]) -> Tuple[List[CandidateFact], Dict[str, int]]:
        """Like consolidate(), also returning counts of what was dropped and why."""
        stats = {"received": 0, "accepted": 0, "low_confidence": 0, "duplicates": 0}
        if not candidates:
            return [], stats

        stats["received"] = len(candidates)
        # sorted() is stable: equal confidences keep extraction order
        ordered = sorted(candidates, key=lambda c: c.confidence, reverse=True)

        accepted: List[CandidateFact] = []
        for candidate in ordered:
            if candidate.confidence <= self.confidence_floor:
                logger.debug(f"Filtering low-confidence candidate ({candidate.confidence:.2f}): {candidate.content}")
                stats["low_confidence"] += 1
                continue

            if self._is_duplicate(candidate, accepted):
                stats["duplicates"] += 1
                continue

            accepted.append(candidate)

        stats["accepted"] = len(accepted)
        return accepted, stats

    def _is_duplicate(self, candidate: CandidateFact, accepted: List[CandidateFact]) -> bool:
        for existing in accepted:
            similarity = jaccard_similarity(candidate.content, existing.content)
            if similarity > self.similarity_threshold:
                logger.debug(f"High similarity detected: {similarity:.3f} ('{candidate.content}' ~ '{existing.content}')")
                return True
        return False
