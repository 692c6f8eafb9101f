"""
DreamWeaver - orchestration core for LLM-conducted bedtime story sessions.

A session state machine that survives model failures, enforces live
quality thresholds, gates generated content through verification, and
consolidates episodic transcripts into provenance-tagged semantic memory.

No global clients. All collaborators are injected; ``build_default_runtime``
wires the in-process defaults.
"""

__version__ = "0.1.0"

from .config import Config, ConductorSettings
from .conductor import ConductorAgent, refine_story_request
from .consolidator import SessionConsolidator
from .events import (
    EventBus,
    InMemoryEventBus,
    SLEEP_CUE_DETECTED,
    STORY_BEAT_COMPLETED,
)
from .llm_calls import AIService, AIServiceError, LLMAIService
from .local_llm import LocalLLMError
from .memory import AgentMemoryStore, InMemoryAgentMemory
from .moments import MomentCurator
from .quality_gate import DEFAULT_THRESHOLDS, QualityGate, QualityGateError, Threshold
from .resilience import ResilienceEngine, ResilienceStrategy, classify_failure
from .runtime import ConductorRuntime, build_default_runtime
from .session_state import InMemorySessionState, SessionNotFoundError, SessionStateStore
from .summarization import MemorySummarizationService
from .trace_log import InMemoryTraceLog, JsonlTraceLog, TraceLog
from .verification import HumanReviewQueue, InMemoryHumanReviewQueue, VerificationPipeline

from .schemas import (
    ActiveGoal,
    ActiveIntent,
    AgentContext,
    AgentThought,
    ContentType,
    CorrectionAction,
    CorrectionPlan,
    DomainEvent,
    DurationClass,
    FailureType,
    GoldenMoment,
    MemoryKind,
    MemoryRecord,
    MemoryScope,
    ModelTier,
    QualityAlert,
    ReasoningTrace,
    ResilienceEvent,
    ResilienceMeta,
    SemanticFact,
    SessionConfig,
    SessionPhase,
    SessionResult,
    SessionState,
    Severity,
    SourceAnchor,
    Suggestion,
    TurnResult,
    UserIntent,
    VerifiableContent,
    VerificationResult,
    VerificationStage,
)

__all__ = [
    "__version__",
    "Config",
    "ConductorSettings",
    "ConductorAgent",
    "refine_story_request",
    "SessionConsolidator",
    "EventBus",
    "InMemoryEventBus",
    "SLEEP_CUE_DETECTED",
    "STORY_BEAT_COMPLETED",
    "AIService",
    "AIServiceError",
    "LLMAIService",
    "LocalLLMError",
    "AgentMemoryStore",
    "InMemoryAgentMemory",
    "MomentCurator",
    "DEFAULT_THRESHOLDS",
    "QualityGate",
    "QualityGateError",
    "Threshold",
    "ResilienceEngine",
    "ResilienceStrategy",
    "classify_failure",
    "ConductorRuntime",
    "build_default_runtime",
    "InMemorySessionState",
    "SessionNotFoundError",
    "SessionStateStore",
    "MemorySummarizationService",
    "InMemoryTraceLog",
    "JsonlTraceLog",
    "TraceLog",
    "HumanReviewQueue",
    "InMemoryHumanReviewQueue",
    "VerificationPipeline",
    "ActiveGoal",
    "ActiveIntent",
    "AgentContext",
    "AgentThought",
    "ContentType",
    "CorrectionAction",
    "CorrectionPlan",
    "DomainEvent",
    "DurationClass",
    "FailureType",
    "GoldenMoment",
    "MemoryKind",
    "MemoryRecord",
    "MemoryScope",
    "ModelTier",
    "QualityAlert",
    "ReasoningTrace",
    "ResilienceEvent",
    "ResilienceMeta",
    "SemanticFact",
    "SessionConfig",
    "SessionPhase",
    "SessionResult",
    "SessionState",
    "Severity",
    "SourceAnchor",
    "Suggestion",
    "TurnResult",
    "UserIntent",
    "VerifiableContent",
    "VerificationResult",
    "VerificationStage",
]
