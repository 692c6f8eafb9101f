"""
Pydantic schemas for the DreamWeaver conductor.

All data structures shared between the conductor, its quality and verification
gates, and the memory consolidation loop are defined here.

Design Philosophy:
- Closed vocabularies are str Enums so they serialise as plain strings
- Records owned by a single turn (traces, alerts, facts, snapshots) are frozen
- Free-form ``context``/``metadata`` dicts carry caller-specific extensions
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware timestamp used as the default for every record."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# ============================================================================
# Vocabularies
# ============================================================================


class SessionPhase(str, Enum):
    """Conversation phases in agenda order."""

    IDLE = "IDLE"
    ONBOARDING = "ONBOARDING"
    STORYTELLING = "STORYTELLING"
    REFLECTION = "REFLECTION"
    WIND_DOWN = "WIND_DOWN"
    ASLEEP = "ASLEEP"


# Rank used to keep phase transitions monotonic (only rollback moves backwards).
PHASE_ORDER: Dict[SessionPhase, int] = {phase: index for index, phase in enumerate(SessionPhase)}


class ActiveIntent(str, Enum):
    LISTEN = "LISTEN"
    INTERRUPT = "INTERRUPT"
    IDLE = "IDLE"


class UserIntent(str, Enum):
    """Coarse intent of a single utterance."""

    DIRECT = "DIRECT"
    ASK_QUESTION = "ASK_QUESTION"
    AFFIRM = "AFFIRM"
    DENY = "DENY"
    INTERRUPT = "INTERRUPT"
    UNKNOWN = "UNKNOWN"


class DurationClass(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class Severity(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class FailureType(str, Enum):
    """Closed set of failure kinds the resilience layer reasons about."""

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    SCHEMA_DRIFT = "SCHEMA_DRIFT"
    SAFETY_VIOLATION = "SAFETY_VIOLATION"
    TOKEN_LIMIT = "TOKEN_LIMIT"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_AUTH_ERROR = "API_AUTH_ERROR"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_BAD_REQUEST = "API_BAD_REQUEST"
    QUALITY_BREACH = "QUALITY_BREACH"
    UNKNOWN = "UNKNOWN"


class CorrectionAction(str, Enum):
    RETRY = "RETRY"
    SELF_CORRECT = "SELF_CORRECT"
    FALLBACK = "FALLBACK"
    ABORT = "ABORT"
    DEGRADE_SERVICE = "DEGRADE_SERVICE"


class ModelTier(str, Enum):
    """Model tiers. ``edge`` runs locally at zero marginal cost."""

    FLASH = "flash"
    PRO = "pro"
    EDGE = "edge"


class VerificationStage(str, Enum):
    RULE = "RULE"
    MODEL = "MODEL"
    HUMAN = "HUMAN"


class ContentType(str, Enum):
    GOLDEN_MOMENT = "GOLDEN_MOMENT"
    SAFETY_ACTION = "SAFETY_ACTION"


class MemoryKind(str, Enum):
    EPISODIC = "EPISODIC"
    SEMANTIC = "SEMANTIC"


# ============================================================================
# Session State
# ============================================================================


class ActiveGoal(BaseModel):
    """One agenda entry: a phase, what to achieve in it, and how long it should take."""

    id: str
    phase: SessionPhase
    goal: str
    estimated_duration_minutes: float = Field(..., ge=0)
    status: str = Field("PENDING", description="PENDING, ACTIVE or DONE")


class SessionSnapshot(BaseModel):
    """Immutable copy of a SessionState taken before a mutation (history excluded)."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    user_id: str
    phase: SessionPhase
    active_intent: ActiveIntent
    emotional_tone: float
    active_goals: List[ActiveGoal] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)
    captured_at: datetime = Field(default_factory=utc_now)


class SessionState(BaseModel):
    """Live state of one session.

    ``history`` is append-only from the point of view of callers: the session
    store pushes a :class:`SessionSnapshot` of the previous value on every
    write, which is what makes ``rollback`` possible.
    """

    session_id: str
    user_id: str
    phase: SessionPhase = SessionPhase.IDLE
    active_intent: ActiveIntent = ActiveIntent.IDLE
    emotional_tone: float = Field(0.5, ge=0.0, le=1.0)
    active_goals: List[ActiveGoal] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)
    history: List[SessionSnapshot] = Field(default_factory=list)

    def snapshot(self) -> SessionSnapshot:
        """Return a deep, history-free copy of the current values."""
        return SessionSnapshot(
            session_id=self.session_id,
            user_id=self.user_id,
            phase=self.phase,
            active_intent=self.active_intent,
            emotional_tone=self.emotional_tone,
            active_goals=[goal.model_copy(deep=True) for goal in self.active_goals],
            context=dict(self.context),
        )

    @classmethod
    def from_snapshot(
        cls, snapshot: SessionSnapshot, history: List[SessionSnapshot]
    ) -> "SessionState":
        return cls(
            session_id=snapshot.session_id,
            user_id=snapshot.user_id,
            phase=snapshot.phase,
            active_intent=snapshot.active_intent,
            emotional_tone=snapshot.emotional_tone,
            active_goals=[goal.model_copy(deep=True) for goal in snapshot.active_goals],
            context=dict(snapshot.context),
            history=list(history),
        )


# ============================================================================
# Reasoning
# ============================================================================


class ResilienceMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    failure_encountered: bool = False
    correction_attempted: Optional[CorrectionAction] = None
    recovery_cost_usd: float = Field(0.0, ge=0.0)


class ReasoningTrace(BaseModel):
    """One agent decision step, immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    goals_considered: List[str] = Field(default_factory=list)
    conflict_detected: bool = False
    conflicts_identified: Optional[str] = None
    trade_off_made: Optional[str] = None
    thought: str
    action: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)
    resilience_meta: Optional[ResilienceMeta] = None


class AgentThought(BaseModel):
    """Structured output requested from the AI capability for one reasoning step."""

    goals_considered: List[str] = Field(default_factory=list)
    conflicts_identified: Optional[str] = None
    trade_off_made: Optional[str] = None
    thought: str
    action: str = Field(..., description="START_STORY, REPLY, SUGGEST or FADE_OUT")
    confidence: float = Field(..., ge=0.0, le=1.0)
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Action parameters; 'reply' holds the spoken text"
    )

    @property
    def reply(self) -> str:
        value = self.parameters.get("reply") or self.parameters.get("text") or ""
        return str(value)


class AgentContext(BaseModel):
    """Caller-supplied context for a session or a turn."""

    user_id: str
    session_id: Optional[str] = None
    child_name: Optional[str] = None
    child_age: Optional[int] = Field(None, ge=0, le=18)
    current_mood: Optional[str] = None
    recent_interests: List[str] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)


class SessionConfig(BaseModel):
    theme: str = Field(..., min_length=1)
    duration: DurationClass = DurationClass.MEDIUM
    style: Optional[str] = None
    child_name: Optional[str] = None
    child_age: Optional[int] = Field(None, ge=0, le=18)


class SessionResult(BaseModel):
    session_id: str
    reasoning_trace: List[ReasoningTrace]
    reply: str
    agenda: List[ActiveGoal] = Field(default_factory=list)
    phase: SessionPhase
    contextual_notes: Optional[str] = None


class TurnResult(BaseModel):
    session_id: str
    reply: str
    trace: List[ReasoningTrace]
    intent: UserIntent
    phase: SessionPhase
    failed: bool = False
    contextual_notes: Optional[str] = None


class Suggestion(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    theme: str
    reasoning: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class SuggestionBatch(BaseModel):
    """Structured response wrapper for suggestion generation."""

    suggestions: List[Suggestion] = Field(default_factory=list)


# ============================================================================
# Quality & Resilience
# ============================================================================


class QualityAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric: str
    current_value: float
    threshold: float
    severity: Severity
    timestamp: datetime = Field(default_factory=utc_now)


class ResilienceEvent(BaseModel):
    """Input to recovery planning for one failure in a logical call chain."""

    type: FailureType
    context: Dict[str, Any] = Field(default_factory=dict)
    attempt: int = Field(..., ge=0)
    cost_so_far: float = Field(0.0, ge=0.0)


class CorrectionPlan(BaseModel):
    action: CorrectionAction
    model: ModelTier
    parameters: Dict[str, Any] = Field(default_factory=dict)
    estimated_cost: float = Field(0.0, ge=0.0)


# ============================================================================
# Verification
# ============================================================================


class VerifiableContent(BaseModel):
    type: ContentType
    content: Any
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VerificationResult(BaseModel):
    approved: bool
    stage: VerificationStage
    reason: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class ReviewItem(BaseModel):
    """Payload handed to the human review sink."""

    item: VerifiableContent
    reason: str
    confidence: float
    enqueued_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Memory
# ============================================================================


class MemoryScope(BaseModel):
    """Whose memories an operation reads or writes."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    session_id: Optional[str] = None


class MemoryRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    kind: MemoryKind
    content: str
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)
    user_id: str
    session_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SourceAnchor(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    transcript_offset: int
    trace_id: Optional[str] = None


class SemanticFact(BaseModel):
    """Durable fact derived from episodic memory, tagged with its provenance."""

    model_config = ConfigDict(frozen=True)

    fact: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    source_anchor: SourceAnchor


class GoldenMoment(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    session_id: str
    description: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utc_now)
    verification: VerificationResult


# ============================================================================
# Events
# ============================================================================


class DomainEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    request_id: str
    trace_id: Optional[str] = None
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class SleepCuePayload(BaseModel):
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    context: Dict[str, Any] = Field(default_factory=dict)


class StoryBeatPayload(BaseModel):
    beat_index: int = Field(..., ge=0)
    total_beats: int = Field(..., ge=1)
    title: Optional[str] = None
