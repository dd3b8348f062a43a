"""
Contradiction detection between a new fact and stored memory.

Only like-with-like comparisons are made: a new fact is compared with stored
facts that express the same subject (age, place of residence, self-identity).
Each subject family recognises both the first-person utterance
("j'ai 30 ans") and the third-person fact rendered by the extractor
("L'utilisateur a 29 ans"). No semantic equivalence is attempted, and only
the plain forms are recognised: "j'habite à Paris" and "j'habite dans la
capitale française" never share a family match, so nothing is flagged.

Contradictions are advisory data. This module never picks a winner.
"""

import re
import logging
from dataclasses import dataclass, asdict
from typing import List, Dict, Optional, Any, Tuple

from lexicon import Category, CONNECTORS, normalize_text
from extractor import as_stored_facts
from rules import TRANSIENT_STATES, PREPOSITIONAL_STATE

logger = logging.getLogger(__name__)


@dataclass
class Contradiction:
    """A same-family conflict between a new fact and a stored one."""
    existing: str
    conflict: str
    severity: float
    family: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SubjectFamily:
    """Regexes that all express the same subject; each exposes a 'value' group."""

    def __init__(self, name: str, patterns: List[str], severity: float, exclude: Optional[str] = None):
        self.name = name
        self.severity = severity
        self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        self.exclude = re.compile(exclude, re.IGNORECASE) if exclude else None

    def match(self, text: str) -> Optional[Tuple[str, str]]:
        """Return (matched phrase, normalized value) or None."""
        for pattern in self.patterns:
            m = pattern.search(text)
            if m is None:
                continue
            value = normalize_value(m.group("value"))
            if not value:
                continue
            if self.exclude is not None and self.exclude.search(value):
                continue
            return m.group(0).strip(), value
        return None


def normalize_value(value: Optional[str]) -> str:
    """Lowercase, collapse spaces and cut at the first connector word."""
    if not value:
        return ""
    words = []
    for word in value.lower().split():
        if word in CONNECTORS or word.startswith("j'"):
            break
        words.append(word)
    return " ".join(words).strip(" '-")


_VALUE = r"(?P<value>[^,.;!?]+)"

SUBJECT_FAMILIES: List[SubjectFamily] = [
    SubjectFamily(
        name="age",
        patterns=[
            r"\bj'ai (?P<value>\d{1,3}) ans\b",
            r"^l'utilisateur a (?P<value>\d{1,3}) ans\b",
        ],
        severity=0.9,
    ),
    SubjectFamily(
        name="location",
        patterns=[
            rf"\bj'habite (?:à|au|en|aux) {_VALUE}",
            rf"^l'utilisateur habite (?:à|au|en|aux) {_VALUE}",
        ],
        severity=0.8,
    ),
    SubjectFamily(
        name="self_identity",
        patterns=[
            rf"\bje suis (?!{PREPOSITIONAL_STATE})(?:un |une )?{_VALUE}",
            rf"^l'utilisateur est (?!{PREPOSITIONAL_STATE})(?:un |une )?{_VALUE}",
        ],
        severity=0.7,
        exclude=TRANSIENT_STATES,
    ),
]


class ContradictionDetector:
    """Flags stored facts that state a different value for the same subject."""

    def __init__(self, families: Optional[List[SubjectFamily]] = None):
        self.families = families or SUBJECT_FAMILIES

    def detect_contradictions(self, new_fact: str, existing_memory,
                              category: Optional[Category] = None) -> List[Contradiction]:
        """Compare a new fact with stored facts of the same subject family.

        Args:
            new_fact: Utterance or rendered fact.
            existing_memory: StoredFacts (or dicts/strings) from the memory store.
            category: When given, stored facts of another known category are skipped.

        Returns:
            One Contradiction per conflicting stored fact and family.
        """
        new_fact = normalize_text(new_fact)
        if not new_fact:
            return []

        memory = as_stored_facts(existing_memory)
        contradictions = []

        for family in self.families:
            new_match = family.match(new_fact)
            if new_match is None:
                continue
            new_phrase, new_value = new_match

            for fact in memory:
                if category is not None and fact.category is not None and fact.category != category:
                    continue
                existing_match = family.match(normalize_text(fact.content))
                if existing_match is None:
                    continue
                existing_phrase, existing_value = existing_match
                if existing_value == new_value:
                    continue

                contradictions.append(Contradiction(
                    existing=fact.content,
                    conflict=f"Contradiction détectée entre \"{existing_phrase}\" et \"{new_phrase}\"",
                    severity=family.severity,
                    family=family.name,
                ))
                logger.info(f"Contradiction ({family.name}): '{existing_phrase}' vs '{new_phrase}'")

        return contradictions
