"""Tests for the contextual classifier."""

import pytest

from lexicon import Category
from extractor import FactSource, StoredFact
from contextual import (
    ContextualClassifier, ConversationContext, infer_category_from_life_change,
)


@pytest.fixture
def classifier():
    return ContextualClassifier()


@pytest.fixture
def location_memory():
    return [StoredFact(content="L'utilisateur habite à Lyon", category=Category.LOCATION)]


# ---------------------------------------------------------------------------
# Lexicon pass
# ---------------------------------------------------------------------------

class TestLexiconPass:
    def test_one_candidate_per_category(self, classifier):
        results = classifier.classify_by_lexicon("Je travaille dans une entreprise")
        assert len(results) == 1
        assert results[0].category == Category.PROFESSION
        assert results[0].confidence == pytest.approx(0.7)
        assert results[0].source == FactSource.CONTEXTUAL

    def test_single_keyword(self, classifier):
        results = classifier.classify_by_lexicon("J'ai pris des vacances")
        assert [r.category for r in results] == [Category.TRAVEL]
        assert results[0].confidence == pytest.approx(0.6)

    def test_topic_boost(self, classifier):
        context = ConversationContext(current_topic="profession")
        results = classifier.classify_by_lexicon("Je travaille dans une entreprise", context)
        assert results[0].confidence == pytest.approx(0.85)

    def test_confidence_is_capped(self, classifier):
        results = classifier.classify_by_lexicon("Mon nom et mon prénom, on m'appelle ainsi depuis ma naissance")
        identity = next(r for r in results if r.category == Category.IDENTITY)
        assert identity.confidence == pytest.approx(0.8)

    def test_no_keyword(self, classifier):
        assert classifier.classify_by_lexicon("Bonjour !") == []
        assert classifier.classify_by_lexicon("") == []


# ---------------------------------------------------------------------------
# Linguistic change detection
# ---------------------------------------------------------------------------

class TestCorrections:
    def test_anchored_correction(self, classifier, location_memory):
        changes = classifier.detect_contextual_changes(
            "En fait j'habite à Marseille", ["J'habite à Lyon"], location_memory
        )
        assert len(changes) == 1
        change = changes[0]
        assert change.source == FactSource.CORRECTION
        assert change.content == "j'habite à Marseille"
        assert change.category == Category.LOCATION
        assert change.confidence == pytest.approx(0.9)
        assert change.old_content == "J'habite à Lyon"

    def test_unanchored_correction_keeps_no_old_content(self, classifier, location_memory):
        changes = classifier.detect_contextual_changes("En fait j'habite à Marseille", [], location_memory)
        assert len(changes) == 1
        assert changes[0].old_content is None

    def test_correction_outside_window(self, location_memory):
        classifier = ContextualClassifier({"history_window": 1})
        history = ["J'habite à Lyon", "Il fait beau"]
        changes = classifier.detect_contextual_changes("En fait j'habite à Marseille", history, location_memory)
        assert changes[0].old_content is None

    def test_correction_needs_memory_of_same_category(self, classifier):
        assert classifier.detect_contextual_changes("En fait j'habite à Marseille", ["J'habite à Lyon"], []) == []

    def test_before_after(self, classifier, location_memory):
        changes = classifier.detect_contextual_changes(
            "Avant j'habitais à Lyon mais maintenant j'habite à Nantes", [], location_memory
        )
        assert changes[0].source == FactSource.CORRECTION
        assert changes[0].old_content == "j'habitais à Lyon"
        assert changes[0].category == Category.LOCATION
        assert changes[0].confidence == pytest.approx(0.85)


class TestOtherChanges:
    def test_update(self, classifier):
        changes = classifier.detect_contextual_changes("Maintenant je travaille chez Google")
        assert len(changes) == 1
        assert changes[0].source == FactSource.UPDATE
        assert changes[0].content == "je travaille chez Google"
        assert changes[0].category == Category.PROFESSION

    def test_life_change(self, classifier):
        changes = classifier.detect_contextual_changes("J'ai déménagé à Bordeaux")
        assert len(changes) == 1
        assert changes[0].source == FactSource.UPDATE
        assert changes[0].category == Category.LOCATION
        assert changes[0].content == "à Bordeaux"

    def test_addition(self, classifier):
        changes = classifier.detect_contextual_changes("D'ailleurs j'ai un chien")
        assert len(changes) == 1
        assert changes[0].source == FactSource.ADDITION
        assert changes[0].confidence == pytest.approx(0.75)

    def test_inference(self, classifier):
        changes = classifier.detect_contextual_changes("Je suis végétarien donc je ne mange pas de viande")
        assert len(changes) == 1
        assert changes[0].source == FactSource.INFERENCE
        assert changes[0].content == "je ne mange pas de viande"

    def test_causal_inference_keeps_effect(self, classifier):
        changes = classifier.detect_contextual_changes("Puisque je suis végétarien, je ne mange pas de viande")
        assert changes[0].source == FactSource.INFERENCE
        assert changes[0].content == "je ne mange pas de viande"
        assert changes[0].confidence == pytest.approx(0.6)

    def test_priority_order(self, classifier, location_memory):
        changes = classifier.detect_contextual_changes(
            "Avant j'habitais à Lyon mais maintenant j'habite à Nantes", [], location_memory
        )
        assert [c.source for c in changes] == [FactSource.CORRECTION, FactSource.UPDATE]

    def test_plain_statement(self, classifier):
        assert classifier.detect_contextual_changes("J'habite à Lyon") == []

    def test_empty(self, classifier):
        assert classifier.detect_contextual_changes("") == []
        assert classifier.detect_contextual_changes(None) == []


class TestClassifyByContext:
    def test_combines_both_passes(self, classifier):
        context = ConversationContext(previous_messages=[])
        results = classifier.classify_by_context("Maintenant je travaille chez Google", context)
        assert [r.source for r in results] == [FactSource.CONTEXTUAL, FactSource.UPDATE]


class TestHelpers:
    @pytest.mark.parametrize("text,expected", [
        ("j'ai déménagé à Lyon", Category.LOCATION),
        ("j'ai changé de job", Category.PROFESSION),
        ("j'ai quitté mon poste", Category.PROFESSION),
        ("j'ai arrêté de fumer", Category.HABITS),
        ("j'ai changé d'avis", Category.GENERAL),
    ])
    def test_life_change_category(self, text, expected):
        assert infer_category_from_life_change(text) == expected

    def test_split_cause_effect(self):
        assert ContextualClassifier._split_cause_effect("je suis végétarien, je ne mange pas de viande") == \
            ("je suis végétarien", "je ne mange pas de viande")
        assert ContextualClassifier._split_cause_effect("il pleut") == ("il pleut", None)
