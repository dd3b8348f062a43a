"""Tests for the consolidation engine."""

import itertools
import pytest

from lexicon import Category
from extractor import CandidateFact, FactSource
from consolidator import FactConsolidator, jaccard_similarity


def _fact(content, confidence, category=Category.GENERAL):
    return CandidateFact(content=content, category=category, confidence=confidence, source=FactSource.REGEX)


@pytest.fixture
def consolidator():
    return FactConsolidator()


# ---------------------------------------------------------------------------
# Confidence floor
# ---------------------------------------------------------------------------

class TestConfidenceFloor:
    def test_low_confidence_dropped(self, consolidator):
        result = consolidator.consolidate([_fact("L'utilisateur aime le jazz", 0.55)])
        assert result == []

    def test_floor_is_exclusive(self, consolidator):
        assert consolidator.consolidate([_fact("L'utilisateur aime le jazz", 0.6)]) == []
        assert len(consolidator.consolidate([_fact("L'utilisateur aime le jazz", 0.61)])) == 1

    def test_configurable_floor(self):
        consolidator = FactConsolidator({"confidence_floor": 0.5})
        assert len(consolidator.consolidate([_fact("L'utilisateur aime le jazz", 0.55)])) == 1

    def test_every_output_above_floor(self, consolidator):
        facts = [_fact(f"fait numéro {i}", c) for i, c in enumerate([0.3, 0.6, 0.65, 0.9, 0.59, 1.0])]
        assert all(f.confidence > 0.6 for f in consolidator.consolidate(facts))


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------

class TestDeduplication:
    def test_exact_duplicate_keeps_most_confident(self, consolidator):
        result = consolidator.consolidate([
            _fact("L'utilisateur habite à Lyon", 0.8),
            _fact("L'utilisateur habite à Lyon", 0.95),
        ])
        assert len(result) == 1
        assert result[0].confidence == 0.95

    def test_near_duplicate(self, consolidator):
        result = consolidator.consolidate([
            _fact("L'utilisateur aime la pizza", 0.9),
            _fact("L'utilisateur aime la pizza napolitaine", 0.8),
        ])
        assert [f.content for f in result] == ["L'utilisateur aime la pizza"]

    def test_distinct_facts_kept(self, consolidator):
        result = consolidator.consolidate([
            _fact("L'utilisateur aime la pizza", 0.9),
            _fact("L'utilisateur aime le jazz", 0.8),
        ])
        assert len(result) == 2

    def test_pairwise_similarity_bound(self, consolidator):
        facts = [
            _fact("L'utilisateur habite à Lyon", 0.9),
            _fact("l'utilisateur habite à lyon", 0.85),
            _fact("L'utilisateur habite à Lyon centre", 0.8),
            _fact("L'utilisateur travaille comme infirmière", 0.75),
            _fact("L'utilisateur travaille comme infirmière de nuit", 0.7),
            _fact("Le prénom de l'utilisateur est Marie", 0.95),
        ]
        result = consolidator.consolidate(facts)
        for a, b in itertools.combinations(result, 2):
            assert jaccard_similarity(a.content, b.content) <= 0.7


# ---------------------------------------------------------------------------
# Ordering and stats
# ---------------------------------------------------------------------------

class TestOrdering:
    def test_descending_confidence(self, consolidator):
        result = consolidator.consolidate([_fact("un chat", 0.7), _fact("deux chiens", 0.9)])
        assert [f.content for f in result] == ["deux chiens", "un chat"]

    def test_ties_keep_input_order(self, consolidator):
        result = consolidator.consolidate([_fact("un chat", 0.8), _fact("deux chiens", 0.8)])
        assert [f.content for f in result] == ["un chat", "deux chiens"]

    def test_empty(self, consolidator):
        assert consolidator.consolidate([]) == []

    def test_stats(self, consolidator):
        accepted, stats = consolidator.consolidate_with_stats([
            _fact("L'utilisateur habite à Lyon", 0.95),
            _fact("L'utilisateur habite à Lyon", 0.8),
            _fact("L'utilisateur aime le jazz", 0.55),
        ])
        assert len(accepted) == 1
        assert stats == {"received": 3, "accepted": 1, "low_confidence": 1, "duplicates": 1}


class TestJaccard:
    def test_identical(self):
        assert jaccard_similarity("Paris est belle", "paris EST belle") == 1.0

    def test_partial(self):
        assert jaccard_similarity("a b", "b c") == pytest.approx(1 / 3)

    def test_empty(self):
        assert jaccard_similarity("", "") == 1.0
        assert jaccard_similarity("a", "") == 0.0
