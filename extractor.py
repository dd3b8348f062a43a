"""
Memoir Fact Extractor
=====================

Turns a single chat utterance into candidate personal facts using the
prioritized regex rule table from rules.py.

This module defines the data shapes shared by the whole pipeline:
- CandidateFact: a provisional fact with confidence and provenance
- StoredFact: a read-only view of a fact owned by the external memory store
- FactSource: provenance tags (regex, contextual, correction, ...)

Extraction is deterministic: the same text and rule table always yield the
same candidates in the same order.
"""

import json
import logging
from datetime import datetime
from typing import List, Dict, Optional, Any, Iterable
from dataclasses import dataclass, asdict, field
from enum import Enum

from lexicon import Category, normalize_text
from rules import DEFAULT_RULES, RULES_VERSION, ExtractionRule

logger = logging.getLogger(__name__)

CONTEXT_BOOST = 0.1
MAX_BOOSTED_CONFIDENCE = 0.95


class FactSource(Enum):
    REGEX = "regex"            # Rule table hit
    CONTEXTUAL = "contextual"  # Lexicon keyword pass
    INFERENCE = "inference"    # "donc", "puisque", ...
    CORRECTION = "correction"  # "en fait", "avant ... maintenant ..."
    UPDATE = "update"          # "maintenant", "j'ai déménagé", ...
    ADDITION = "addition"      # "d'ailleurs", "en plus", ...


@dataclass
class CandidateFact:
    """A provisional, unpersisted fact proposed by extraction."""
    content: str
    category: Category
    confidence: float
    source: FactSource = FactSource.REGEX
    reasoning: Optional[str] = None
    old_content: Optional[str] = None

    def __post_init__(self):
        self.confidence = max(0.0, min(1.0, self.confidence))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        data["source"] = self.source.value
        return data


@dataclass
class StoredFact:
    """A persisted fact owned by the memory store. Never mutated by the pipeline."""
    content: str
    category: Optional[Category] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    embedding: Optional[List[float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.category is not None and not isinstance(self.category, Category):
            coerced = Category.coerce(self.category)
            if coerced is None:
                logger.debug(f"Ignoring unknown category '{self.category}' on stored fact {self.id}")
            self.category = coerced
        if self.content is None:
            self.content = ""
        elif not isinstance(self.content, str):
            self.content = str(self.content)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredFact":
        return cls(
            content=data.get("content"),
            category=data.get("category"),
            id=data.get("id"),
            created_at=data.get("created_at") or data.get("createdAt"),
            updated_at=data.get("updated_at") or data.get("updatedAt"),
            embedding=data.get("embedding"),
            metadata=data.get("metadata") or {},
        )


def as_stored_facts(memory: Optional[Iterable[Any]]) -> List[StoredFact]:
    """Accept StoredFacts, dicts or bare strings and return StoredFacts."""
    facts = []
    for item in memory or []:
        if isinstance(item, StoredFact):
            facts.append(item)
        elif isinstance(item, dict):
            facts.append(StoredFact.from_dict(item))
        elif isinstance(item, str):
            facts.append(StoredFact(content=item))
        else:
            logger.warning(f"Skipping memory entry of unsupported type {type(item).__name__}")
    return facts


class PatternExtractor:
    """Applies the ordered rule table to an utterance."""

    def __init__(self, rules: Optional[List[ExtractionRule]] = None, version: Optional[str] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)
        self.version = version or (RULES_VERSION if rules is None else "custom")
        logger.debug(f"Pattern extractor ready with {len(self.rules)} rules (version {self.version})")

    def extract(self, text: str) -> List[CandidateFact]:
        """Extract candidate facts from one utterance.

        Every rule is tried in table order; a rule fires when its pattern
        matches and its exclusion (if any) does not. List rules yield one
        candidate per enumerated item. Confidence is raised by
        CONTEXT_BOOST, capped at MAX_BOOSTED_CONFIDENCE, when one of the rule's
        context words appears in the text. No deduplication happens here.
        """
        text = normalize_text(text)
        if not text:
            return []

        candidates = []
        for rule in self.rules:
            match = rule.match(text)
            if match is None:
                continue

            confidence = rule.confidence
            if rule.has_context(text):
                confidence = min(MAX_BOOSTED_CONFIDENCE, confidence + CONTEXT_BOOST)

            for content in rule.render_all(match):
                if not content:
                    continue
                candidates.append(CandidateFact(
                    content=content,
                    category=rule.category,
                    confidence=round(confidence, 2),
                    source=FactSource.REGEX,
                    reasoning=f"Règle '{rule.name}' : \"{match.group(0)}\"",
                ))

        logger.debug(f"Extracted {len(candidates)} candidate(s) from: {text[:80]}")
        return candidates

    def extract_many(self, utterances: Iterable[str]) -> List[CandidateFact]:
        """Extract from several utterances, preserving utterance order."""
        facts = []
        for utterance in utterances:
            facts.extend(self.extract(utterance))
        return facts

    def save_to_json(self, facts: List[CandidateFact], output_file: str) -> None:
        """Save candidate facts to a JSON file."""
        logger.info(f"Saving {len(facts)} facts to {output_file}")
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump([fact.to_dict() for fact in facts], f, indent=2, ensure_ascii=False)

    def get_extraction_summary(self, facts: List[CandidateFact]) -> Dict[str, Any]:
        """Summary statistics over a list of candidates."""
        if not facts:
            return {}

        category_counts: Dict[str, int] = {}
        source_counts: Dict[str, int] = {}
        for fact in facts:
            category_counts[fact.category.value] = category_counts.get(fact.category.value, 0) + 1
            source_counts[fact.source.value] = source_counts.get(fact.source.value, 0) + 1

        avg_confidence = sum(f.confidence for f in facts) / len(facts)

        return {
            "total_facts": len(facts),
            "categories": category_counts,
            "sources": source_counts,
            "average_confidence": round(avg_confidence, 3),
            "rules_version": self.version,
        }
