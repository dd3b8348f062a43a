"""
Memoir Pipeline
===============

Runs one user turn through every stage and returns what the memory layer
needs to decide on:

1. rule-table extraction (lexicon fallback when no rule fires),
2. contextual change detection against the recent history,
3. contradiction checks of the turn and of each candidate against memory,
4. consolidation (confidence floor, near-duplicate removal),
5. follow-up suggestions and memory gap analysis.

Nothing is persisted here; the result is handed back to the caller.
"""

import os
import json
import uuid
import logging
from datetime import datetime
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any

from extractor import CandidateFact, PatternExtractor, as_stored_facts
from rules import ExtractionRule
from contextual import ContextualClassifier, ConversationContext, HISTORY_WINDOW
from contradictions import Contradiction, ContradictionDetector
from consolidator import FactConsolidator
from suggestions import Suggestion, GapAnalysis, SuggestionEngine
from sentiment import analyze_sentiment

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    """Tracks the processing of one turn."""
    id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str = "running"  # running, completed, failed

    # Processing metrics
    candidates_extracted: int = 0
    lexicon_fallback: bool = False
    changes_detected: int = 0
    contradictions_detected: int = 0
    facts_accepted: int = 0
    low_confidence_filtered: int = 0
    duplicates_filtered: int = 0

    error_message: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
            "candidates_extracted": self.candidates_extracted,
            "lexicon_fallback": self.lexicon_fallback,
            "changes_detected": self.changes_detected,
            "contradictions_detected": self.contradictions_detected,
            "facts_accepted": self.facts_accepted,
            "low_confidence_filtered": self.low_confidence_filtered,
            "duplicates_filtered": self.duplicates_filtered,
            "error_message": self.error_message,
            "logs": list(self.logs),
        }


@dataclass
class PipelineResult:
    run: PipelineRun
    facts: List[CandidateFact] = field(default_factory=list)
    changes: List[CandidateFact] = field(default_factory=list)
    contradictions: List[Contradiction] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    gaps: GapAnalysis = field(default_factory=GapAnalysis)
    sentiment: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facts": [f.to_dict() for f in self.facts],
            "changes": [c.to_dict() for c in self.changes],
            "contradictions": [c.to_dict() for c in self.contradictions],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "gaps": self.gaps.to_dict(),
            "sentiment": dict(self.sentiment),
            "run": self.run.to_dict(),
        }


class MemoryPipeline:
    """Wires the extraction, classification, contradiction, consolidation and
    suggestion stages together for a single conversation."""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 rules: Optional[List[ExtractionRule]] = None,
                 suggestion_engine: Optional[SuggestionEngine] = None,
                 rules_version: Optional[str] = None):
        self.config = config or {}
        self.history_window = self.config.get("history_window", HISTORY_WINDOW)

        self.extractor = PatternExtractor(rules, version=rules_version)
        self.classifier = ContextualClassifier(self.config)
        self.detector = ContradictionDetector()
        self.consolidator = FactConsolidator(self.config)
        self.suggestions = suggestion_engine or SuggestionEngine(self.config)

    def process_turn(self, text: str, history: Optional[List[str]] = None,
                     existing_memory=None, context: Optional[ConversationContext] = None) -> PipelineResult:
        """
        Process one user utterance.

        Args:
            text: The utterance.
            history: Previous user utterances, oldest first.
            existing_memory: Stored facts (StoredFact, dict or string).
            context: Optional conversation context (topic, mood, ...).

        Returns:
            PipelineResult; empty for blank or non-string input.
        """
        run = PipelineRun(id=str(uuid.uuid4()), start_time=datetime.now())
        result = PipelineResult(run=run)

        if not isinstance(text, str) or not text.strip():
            run.status = "completed"
            run.end_time = datetime.now()
            run.logs.append("Empty utterance, nothing to do")
            return result

        history = [h for h in (history or []) if isinstance(h, str) and h.strip()]
        recent = history[-self.history_window:] if self.history_window > 0 else []
        memory = as_stored_facts(existing_memory)
        if context is None:
            context = ConversationContext(previous_messages=recent)

        try:
            # 1. Rule table, lexicon pass as fallback
            candidates = self.extractor.extract(text)
            if not candidates:
                candidates = self.classifier.classify_by_lexicon(text, context)
                run.lexicon_fallback = bool(candidates)
            run.candidates_extracted = len(candidates)
            run.logs.append(f"Extracted {len(candidates)} candidate(s)")

            # 2. Corrections, updates, additions, inferences
            result.changes = self.classifier.detect_contextual_changes(text, recent, memory)
            run.changes_detected = len(result.changes)
            if result.changes:
                run.logs.append(f"Detected {len(result.changes)} contextual change(s)")

            # 3. Contradictions
            result.contradictions = self._check_contradictions(text, candidates, memory)
            run.contradictions_detected = len(result.contradictions)
            if result.contradictions:
                run.logs.append(f"Detected {len(result.contradictions)} contradiction(s)")

            # 4. Consolidation
            result.facts, stats = self.consolidator.consolidate_with_stats(candidates)
            run.facts_accepted = stats["accepted"]
            run.low_confidence_filtered = stats["low_confidence"]
            run.duplicates_filtered = stats["duplicates"]
            run.logs.append(f"Accepted {stats['accepted']} of {stats['received']} candidate(s)")

            # 5. Suggestions and gaps
            result.suggestions = self.suggestions.generate_suggestions(recent + [text], memory)
            result.gaps = self.suggestions.analyze_memory_gaps(memory)

            result.sentiment = analyze_sentiment(text)

            run.status = "completed"
            run.end_time = datetime.now()
            logger.info(f"Turn processed in {(run.end_time - run.start_time).total_seconds():.3f}s: "
                        f"{run.facts_accepted} fact(s), {run.contradictions_detected} contradiction(s)")

        except Exception as e:
            run.status = "failed"
            run.error_message = str(e)
            run.end_time = datetime.now()
            logger.error(f"Turn processing failed: {e}", exc_info=True)
            return PipelineResult(run=run)

        return result

    def _check_contradictions(self, text: str, candidates: List[CandidateFact], memory) -> List[Contradiction]:
        """Turn text first, then each candidate; one entry per stored fact and family."""
        found: List[Contradiction] = []
        seen = set()

        checks = [(text, None)] + [(c.content, c.category) for c in candidates]
        for content, category in checks:
            for contradiction in self.detector.detect_contradictions(content, memory, category):
                key = (contradiction.existing, contradiction.family)
                if key in seen:
                    continue
                seen.add(key)
                found.append(contradiction)
        return found


def process_transcript(lines: List[str], pipeline: Optional[MemoryPipeline] = None) -> List[PipelineResult]:
    """Run a transcript (one utterance per line) through the pipeline.

    Accepted facts of earlier turns are fed back as memory for later turns.
    """
    pipeline = pipeline or MemoryPipeline()
    history: List[str] = []
    memory: List[Dict[str, Any]] = []
    results = []

    for line in lines:
        line = line.strip()
        if not line:
            continue
        result = pipeline.process_turn(line, history, memory)
        results.append(result)
        memory.extend({"content": f.content, "category": f.category.value} for f in result.facts)
        history.append(line)

    return results


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Extract personal facts from a chat transcript")
    parser.add_argument("input_path", help="Transcript file, one user utterance per line")
    parser.add_argument("-o", "--output", help="Output JSON file", default="pipeline_results.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    if not os.path.isfile(args.input_path):
        print(f"Error: {args.input_path} is not a valid file")
        exit(1)

    with open(args.input_path, "r", encoding="utf-8") as f:
        results = process_transcript(f.readlines())

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in results], f, indent=2, ensure_ascii=False)

    facts = [fact for r in results for fact in r.facts]
    summary = PatternExtractor().get_extraction_summary(facts)
    summary["turns"] = len(results)
    summary["contradictions"] = sum(len(r.contradictions) for r in results)

    print("\nPipeline Summary:")
    print(json.dumps(summary, indent=2, ensure_ascii=False))
