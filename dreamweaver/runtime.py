"""Runtime wiring.

``build_default_runtime`` is the single place where concrete collaborators
are chosen and connected. Everything else receives its dependencies at
construction time, so tests and hosts can swap any piece.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dreamweaver.config import ConductorSettings
from dreamweaver.conductor import ConductorAgent
from dreamweaver.consolidator import SessionConsolidator
from dreamweaver.events import EventBus, InMemoryEventBus
from dreamweaver.llm_calls import AIService, LLMAIService
from dreamweaver.logging_utils import log_info
from dreamweaver.memory import AgentMemoryStore, InMemoryAgentMemory
from dreamweaver.moments import MomentCurator
from dreamweaver.quality_gate import QualityGate
from dreamweaver.resilience import ResilienceEngine, ResilienceStrategy
from dreamweaver.session_state import InMemorySessionState, SessionStateStore
from dreamweaver.summarization import MemorySummarizationService
from dreamweaver.trace_log import InMemoryTraceLog, JsonlTraceLog, TraceLog
from dreamweaver.verification import InMemoryHumanReviewQueue, VerificationPipeline


@dataclass
class ConductorRuntime:
    """Every component of a running conductor, already wired together."""

    settings: ConductorSettings
    ai_service: AIService
    session_state: SessionStateStore
    memory: AgentMemoryStore
    event_bus: EventBus
    resilience: ResilienceStrategy
    quality_gate: QualityGate
    trace_log: TraceLog
    review_queue: InMemoryHumanReviewQueue
    verification: VerificationPipeline
    summarizer: MemorySummarizationService
    consolidator: SessionConsolidator
    curator: MomentCurator
    conductor: ConductorAgent

    async def shutdown(self) -> None:
        """Let background consolidation finish and detach from the bus."""
        await self.consolidator.drain()
        self.consolidator.unsubscribe()


def build_default_runtime(
    settings: Optional[ConductorSettings] = None,
    *,
    ai_service: Optional[AIService] = None,
    trace_dir: Optional[str | Path] = None,
    background_consolidation: bool = True,
) -> ConductorRuntime:
    """Compose the in-process runtime.

    Parameters
    ----------
    settings:
        Configuration object. Defaults to a snapshot of the environment.
    ai_service:
        AI capability. Defaults to :class:`LLMAIService` over ``settings``.
    trace_dir:
        When given, reasoning traces are appended to JSONL files there
        instead of being kept in memory.
    background_consolidation:
        Whether the consolidator schedules summarization as background tasks.
    """

    settings = settings or ConductorSettings.from_config()
    ai_service = ai_service or LLMAIService(settings)
    session_state = InMemorySessionState(history_limit=settings.session_history_limit)
    memory = InMemoryAgentMemory()
    event_bus = InMemoryEventBus()
    resilience = ResilienceEngine(
        budget_usd=settings.finops_turn_budget_usd,
        max_attempts=settings.max_turn_attempts,
    )
    quality_gate = QualityGate()
    trace_log: TraceLog = JsonlTraceLog(trace_dir) if trace_dir else InMemoryTraceLog()
    review_queue = InMemoryHumanReviewQueue()
    verification = VerificationPipeline(
        ai_service,
        review_queue,
        confidence_threshold=settings.verification_confidence_threshold,
    )
    summarizer = MemorySummarizationService(memory, ai_service, window=settings.summary_window)
    consolidator = SessionConsolidator(
        event_bus, summarizer, session_state, background=background_consolidation
    )
    curator = MomentCurator(memory, ai_service, verification)
    conductor = ConductorAgent(
        ai_service,
        session_state,
        resilience,
        memory=memory,
        quality_gate=quality_gate,
        trace_log=trace_log,
        settings=settings,
    )

    consolidator.subscribe()
    conductor.subscribe(event_bus)
    log_info(f"[Runtime] Conductor ready ({settings.llm_provider}/{settings.pro_model})")

    return ConductorRuntime(
        settings=settings,
        ai_service=ai_service,
        session_state=session_state,
        memory=memory,
        event_bus=event_bus,
        resilience=resilience,
        quality_gate=quality_gate,
        trace_log=trace_log,
        review_queue=review_queue,
        verification=verification,
        summarizer=summarizer,
        consolidator=consolidator,
        curator=curator,
        conductor=conductor,
    )
