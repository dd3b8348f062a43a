"""
Memoir REST API
===============

FastAPI service exposing fact extraction, contextual classification,
contradiction detection, consolidation and follow-up suggestions.

The service is stateless apart from the per-session suggestion engines,
which remember the questions already surfaced in each conversation. At most
MEMOIR_MAX_SESSIONS engines are kept; the least recently used one goes first.
"""

import os
import logging
import threading
from collections import OrderedDict
from typing import List, Optional, Dict, Any

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from lexicon import Category
from rules import DEFAULT_RULES, RULES_VERSION, load_rules
from extractor import CandidateFact, FactSource, StoredFact, PatternExtractor
from contextual import ContextualClassifier, ConversationContext
from contradictions import ContradictionDetector
from consolidator import FactConsolidator
from suggestions import SuggestionEngine
from pipeline import MemoryPipeline

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RULES_FILE = os.environ.get("MEMOIR_RULES_FILE")
MAX_SUGGESTIONS = int(os.environ.get("MEMOIR_MAX_SUGGESTIONS", "3"))
USED_SUGGESTIONS_LIMIT = int(os.environ.get("MEMOIR_USED_SUGGESTIONS_LIMIT", "100"))
HISTORY_WINDOW = int(os.environ.get("MEMOIR_HISTORY_WINDOW", "3"))
MAX_SESSIONS = int(os.environ.get("MEMOIR_MAX_SESSIONS", "1000"))

if RULES_FILE:
    RULES_VERSION_LOADED, RULES = load_rules(RULES_FILE)
else:
    RULES_VERSION_LOADED, RULES = RULES_VERSION, DEFAULT_RULES

ENGINE_CONFIG = {
    "max_suggestions": MAX_SUGGESTIONS,
    "used_suggestions_limit": USED_SUGGESTIONS_LIMIT,
    "history_window": HISTORY_WINDOW,
}

app = FastAPI(
    title="Memoir",
    description="Personal-fact extraction and memory consolidation for French conversations",
    version="1.0.0",
)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class StoredFactIn(BaseModel):
    content: str
    category: Optional[str] = None
    id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CandidateIn(BaseModel):
    content: str
    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: str = "regex"
    reasoning: Optional[str] = None
    old_content: Optional[str] = None


class CandidateOut(BaseModel):
    content: str
    category: str
    confidence: float
    source: str
    reasoning: Optional[str] = None
    old_content: Optional[str] = None


class ExtractRequest(BaseModel):
    text: str


class ExtractResponse(BaseModel):
    count: int
    rules_version: str
    facts: List[CandidateOut]


class ClassifyRequest(BaseModel):
    text: str
    history: List[str] = Field(default_factory=list)
    current_topic: Optional[str] = None
    memory: List[StoredFactIn] = Field(default_factory=list)


class ContradictionRequest(BaseModel):
    fact: str
    memory: List[StoredFactIn] = Field(default_factory=list)
    category: Optional[str] = None


class ConsolidateRequest(BaseModel):
    candidates: List[CandidateIn]


class ProcessRequest(BaseModel):
    text: str
    history: List[str] = Field(default_factory=list)
    memory: List[StoredFactIn] = Field(default_factory=list)
    current_topic: Optional[str] = None
    session_id: str = "default"


class SuggestionRequest(BaseModel):
    utterances: List[str]
    memory: List[StoredFactIn] = Field(default_factory=list)
    max_suggestions: Optional[int] = Field(default=None, ge=0)
    session_id: str = "default"


class GapRequest(BaseModel):
    memory: List[StoredFactIn] = Field(default_factory=list)
    session_id: str = "default"


class HealthResponse(BaseModel):
    status: str
    rules: int
    rules_version: str
    sessions: int = 0


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
# Least recently used sessions are evicted once MAX_SESSIONS is exceeded.
_sessions: "OrderedDict[str, SuggestionEngine]" = OrderedDict()
_sessions_lock = threading.Lock()


def _get_engine(session_id: str) -> SuggestionEngine:
    with _sessions_lock:
        engine = _sessions.get(session_id)
        if engine is not None:
            _sessions.move_to_end(session_id)
            return engine

        engine = SuggestionEngine(ENGINE_CONFIG)
        _sessions[session_id] = engine
        logger.info(f"Created suggestion engine for session '{session_id}'")
        while len(_sessions) > max(1, MAX_SESSIONS):
            evicted, _ = _sessions.popitem(last=False)
            logger.info(f"Evicted suggestion engine for session '{evicted}'")
        return engine


def _drop_engine(session_id: str) -> bool:
    with _sessions_lock:
        return _sessions.pop(session_id, None) is not None


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def _parse_category(value: Optional[str]) -> Optional[Category]:
    if value is None:
        return None
    category = Category.coerce(value)
    if category is None:
        valid = ", ".join(c.value for c in Category)
        raise HTTPException(400, f"Invalid category: {value}. Valid: {valid}")
    return category


def _to_memory(facts: List[StoredFactIn]) -> List[StoredFact]:
    return [
        StoredFact(content=f.content, category=_parse_category(f.category), id=f.id, metadata=f.metadata)
        for f in facts
    ]


def _to_candidate(body: CandidateIn) -> CandidateFact:
    try:
        source = FactSource(body.source)
    except ValueError:
        raise HTTPException(400, f"Invalid source: {body.source}")
    return CandidateFact(
        content=body.content,
        category=_parse_category(body.category),
        confidence=body.confidence,
        source=source,
        reasoning=body.reasoning,
        old_content=body.old_content,
    )


def _out(facts: List[CandidateFact]) -> List[CandidateOut]:
    return [CandidateOut(**f.to_dict()) for f in facts]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
def health():
    with _sessions_lock:
        sessions = len(_sessions)
    return HealthResponse(status="ok", rules=len(RULES), rules_version=RULES_VERSION_LOADED, sessions=sessions)


@app.get("/rules")
def list_rules():
    """The active extraction rule table, in priority order."""
    return {
        "version": RULES_VERSION_LOADED,
        "rules": [
            {
                "name": r.name,
                "pattern": r.pattern.pattern,
                "category": r.category.value,
                "template": r.template.text,
                "confidence": r.confidence,
                "context_words": r.context_words,
                "list_group": r.list_group,
                "list_join": r.list_join,
            }
            for r in RULES
        ],
    }


@app.post("/extract", response_model=ExtractResponse)
def extract(body: ExtractRequest):
    """Run the rule table over one utterance."""
    extractor = PatternExtractor(RULES, version=RULES_VERSION_LOADED)
    facts = extractor.extract(body.text)
    return ExtractResponse(count=len(facts), rules_version=extractor.version, facts=_out(facts))


@app.post("/classify")
def classify(body: ClassifyRequest):
    """Lexicon classification plus contextual change detection."""
    memory = _to_memory(body.memory)
    context = ConversationContext(previous_messages=body.history, current_topic=body.current_topic)
    classifier = ContextualClassifier(ENGINE_CONFIG)
    return {
        "classifications": _out(classifier.classify_by_lexicon(body.text, context)),
        "changes": _out(classifier.detect_contextual_changes(body.text, body.history, memory)),
    }


@app.post("/contradictions")
def contradictions(body: ContradictionRequest):
    """Stored facts that state a different value for the same subject."""
    found = ContradictionDetector().detect_contradictions(
        body.fact, _to_memory(body.memory), _parse_category(body.category)
    )
    return {"count": len(found), "contradictions": [c.to_dict() for c in found]}


@app.post("/consolidate")
def consolidate(body: ConsolidateRequest):
    """Filter and deduplicate a batch of candidates."""
    candidates = [_to_candidate(c) for c in body.candidates]
    accepted, stats = FactConsolidator(ENGINE_CONFIG).consolidate_with_stats(candidates)
    return {"facts": _out(accepted), "stats": stats}


@app.post("/process")
def process(body: ProcessRequest):
    """Full pipeline for one turn of a session."""
    memory = _to_memory(body.memory)
    context = ConversationContext(
        previous_messages=body.history[-HISTORY_WINDOW:] if HISTORY_WINDOW > 0 else [],
        current_topic=body.current_topic,
    )
    pipeline = MemoryPipeline(ENGINE_CONFIG, RULES, _get_engine(body.session_id), rules_version=RULES_VERSION_LOADED)
    result = pipeline.process_turn(body.text, body.history, memory, context)
    return result.to_dict()


@app.post("/suggestions")
def suggestions(body: SuggestionRequest):
    """Follow-up questions for the recent utterances of a session."""
    engine = _get_engine(body.session_id)
    found = engine.generate_suggestions(body.utterances, _to_memory(body.memory), body.max_suggestions)
    return {"count": len(found), "suggestions": [s.to_dict() for s in found]}


@app.post("/gaps")
def gaps(body: GapRequest):
    """Categories with no stored fact, each with an opening question."""
    analysis = _get_engine(body.session_id).analyze_memory_gaps(_to_memory(body.memory))
    return analysis.to_dict()


@app.post("/suggestions/{suggestion_id}/used")
def mark_used(suggestion_id: str, session_id: str = Query("default")):
    """Record a suggestion as surfaced or dismissed so it is not proposed again."""
    engine = _get_engine(session_id)
    engine.mark_suggestion_used(suggestion_id)
    return {"id": suggestion_id, "session_id": session_id, "used": len(engine.used)}


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    """Forget a session and the suggestions it has already used."""
    if not _drop_engine(session_id):
        raise HTTPException(404, f"Unknown session: {session_id}")
    return {"deleted": session_id}
