"""Tests for contradiction detection."""

import pytest

from lexicon import Category
from extractor import StoredFact
from contradictions import ContradictionDetector, SUBJECT_FAMILIES, normalize_value


@pytest.fixture
def detector():
    return ContradictionDetector()


@pytest.fixture
def memory():
    return [
        StoredFact(content="L'utilisateur a 29 ans", category=Category.IDENTITY),
        StoredFact(content="L'utilisateur habite à Paris", category=Category.LOCATION),
        StoredFact(content="L'utilisateur est curieux", category=Category.PERSONALITY),
    ]


class TestAge:
    def test_different_age(self, detector, memory):
        found = detector.detect_contradictions("En fait j'ai 30 ans", memory)
        assert len(found) == 1
        assert found[0].existing == "L'utilisateur a 29 ans"
        assert found[0].severity == pytest.approx(0.9)
        assert found[0].family == "age"
        assert "j'ai 30 ans" in found[0].conflict

    def test_same_age(self, detector, memory):
        assert detector.detect_contradictions("J'ai 29 ans", memory) == []

    def test_rendered_fact(self, detector, memory):
        found = detector.detect_contradictions("L'utilisateur a 31 ans", memory)
        assert [c.family for c in found] == ["age"]


class TestLocation:
    def test_different_city(self, detector, memory):
        found = detector.detect_contradictions("J'habite à Lyon depuis peu", memory)
        assert len(found) == 1
        assert found[0].existing == "L'utilisateur habite à Paris"
        assert found[0].severity == pytest.approx(0.8)

    def test_same_city_other_case(self, detector, memory):
        assert detector.detect_contradictions("j'habite à paris", memory) == []

    def test_no_semantic_equivalence(self, detector, memory):
        assert detector.detect_contradictions("J'habite dans la capitale française", memory) == []


class TestSelfIdentity:
    def test_different_trait(self, detector, memory):
        found = detector.detect_contradictions("Je suis timide", memory)
        assert len(found) == 1
        assert found[0].severity == pytest.approx(0.7)

    def test_transient_state_ignored(self, detector, memory):
        assert detector.detect_contradictions("Je suis fatigué", memory) == []

    @pytest.mark.parametrize("text", ["Je suis en GMT+2", "Je suis dispo le mardi soir", "Je suis chez moi"])
    def test_place_or_availability_is_not_a_trait(self, detector, memory, text):
        assert detector.detect_contradictions(text, memory) == []


class TestLocality:
    def test_never_cross_family(self, detector, memory):
        for text in ("J'ai 30 ans", "J'habite à Lyon", "Je suis timide"):
            for contradiction in detector.detect_contradictions(text, memory):
                family = next(f for f in SUBJECT_FAMILIES if f.name == contradiction.family)
                assert family.match(text) is not None
                assert family.match(contradiction.existing) is not None

    def test_category_filter(self, detector):
        memory = [{"content": "L'utilisateur a 29 ans", "category": "profession"}]
        assert detector.detect_contradictions("J'ai 30 ans", memory, Category.IDENTITY) == []
        assert len(detector.detect_contradictions("J'ai 30 ans", memory)) == 1

    def test_uncategorised_memory_is_compared(self, detector):
        found = detector.detect_contradictions("J'ai 30 ans", ["J'ai 29 ans"], Category.IDENTITY)
        assert len(found) == 1

    def test_unrelated_statement(self, detector, memory):
        assert detector.detect_contradictions("J'adore la pizza", memory) == []

    @pytest.mark.parametrize("text", ["", None])
    def test_empty(self, detector, memory, text):
        assert detector.detect_contradictions(text, memory) == []

    def test_empty_memory(self, detector):
        assert detector.detect_contradictions("J'ai 30 ans", []) == []


class TestHelpers:
    def test_normalize_value(self):
        assert normalize_value("Lyon et Paris") == "lyon"
        assert normalize_value("  Paris  ") == "paris"
        assert normalize_value(None) == ""

    def test_to_dict(self, detector, memory):
        data = detector.detect_contradictions("J'ai 30 ans", memory)[0].to_dict()
        assert set(data) == {"existing", "conflict", "severity", "family"}
