"""
The bedtime conductor: one session's reasoning loop and phase machine.

Each turn:
1. Classify the utterance and advance the phase along the agenda
2. Ask the AI capability for one reasoning step, instrumented by the quality gate
3. On failure, classify it, ask the resilience strategy for a correction plan
   and execute it (retry, self-correct, fallback, abort or degrade)
4. Persist the new session state, the reasoning trace and the episodic record

A turn never raises because of the AI layer. The worst outcome is an
explicit failed turn (ABORT) or a SAFE_MODE trace, both with a reply.
Session state is written only after reasoning settles, so a failed model
call cannot leave a half-applied update behind.

Callers must serialize turns per session.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from dreamweaver.cognition.intent import IntentClassifier
from dreamweaver.cognition.planner import SessionPlanner, goal_for_elapsed
from dreamweaver.cognition.prompts import (
    ABORT_REPLY,
    DEFAULT_PROMPTS,
    SAFE_MODE_REPLY,
    SAFETY_FALLBACK,
    SLEEP_PACING_OVERRIDE,
    START_STORY_TRIGGER,
    PromptLibrary,
)
from dreamweaver.cognition.renderers import RenderedPrompt, fill_placeholders, render_prompt
from dreamweaver.config import ConductorSettings
from dreamweaver.events import SLEEP_CUE_DETECTED, EventBus
from dreamweaver.llm_calls import AIService
from dreamweaver.logging_utils import (
    log_deterministic,
    log_error,
    log_info,
    log_llm,
    log_success,
    log_warning,
)
from dreamweaver.memory import WILDCARD_QUERY, AgentMemoryStore
from dreamweaver.quality_gate import QualityGate, QualityGateError
from dreamweaver.resilience import ResilienceStrategy, classify_failure
from dreamweaver.schemas import (
    PHASE_ORDER,
    ActiveGoal,
    ActiveIntent,
    AgentContext,
    AgentThought,
    CorrectionAction,
    CorrectionPlan,
    DomainEvent,
    DurationClass,
    FailureType,
    MemoryKind,
    MemoryScope,
    ModelTier,
    ReasoningTrace,
    ResilienceEvent,
    ResilienceMeta,
    SessionConfig,
    SessionPhase,
    SessionResult,
    SessionState,
    SleepCuePayload,
    Suggestion,
    SuggestionBatch,
    TurnResult,
    UserIntent,
    utc_now,
    new_id,
)
from dreamweaver.session_state import SessionStateStore
from dreamweaver.summarization import TRACE_ID_KEY
from dreamweaver.trace_log import TraceLog


SAFE_MODE_ACTION = "SAFE_MODE"
SAFE_MODE_NOTES = "Safe Mode active."
FALLBACK_ACTION = "FALLBACK"
ABORT_ACTION = "ABORT"
SESSION_STARTED_KEY = "session_started_at"
PACING_OVERRIDE_KEY = "pacing_override"
MAX_SUGGESTIONS = 3
HISTORY_TURNS = 6
TIRED_MOODS = ("tired", "sleepy", "exhausted", "cranky")
ENERGETIC_MOODS = ("energetic", "excited", "hyper", "wired")

# Actions that pull the phase forward regardless of the agenda clock.
ACTION_PHASE_FLOOR: Dict[str, SessionPhase] = {
    "START_STORY": SessionPhase.STORYTELLING,
    "FADE_OUT": SessionPhase.WIND_DOWN,
}


class _RetryRequested(Exception):
    """Internal signal: the correction plan asked for another model call."""


@dataclass
class _RecoveryLedger:
    """Attempt and cost bookkeeping for one logical call chain (one turn)."""

    tier: ModelTier = ModelTier.PRO
    attempt: int = 0
    cost_usd: float = 0.0
    timeout_seconds: Optional[float] = None
    instructions: List[str] = field(default_factory=list)
    last_failure: Optional[FailureType] = None
    last_action: Optional[CorrectionAction] = None

    def meta(self) -> Optional[ResilienceMeta]:
        if self.attempt == 0:
            return None
        return ResilienceMeta(
            failure_encountered=True,
            correction_attempted=self.last_action,
            recovery_cost_usd=self.cost_usd,
        )


@dataclass
class _ReasoningOutcome:
    trace: ReasoningTrace
    reply: str
    failed: bool = False
    contextual_notes: Optional[str] = None


def refine_story_request(config: SessionConfig, context: AgentContext) -> SessionConfig:
    """Adjust the requested duration to the child's mood.

    A tired child always gets the short agenda, even over an explicit
    request; an energetic one gets the medium agenda.
    """
    mood = (context.current_mood or "").strip().lower()
    if mood in TIRED_MOODS:
        return config.model_copy(update={"duration": DurationClass.SHORT})
    if mood in ENERGETIC_MOODS:
        return config.model_copy(update={"duration": DurationClass.MEDIUM})
    return config


class ConductorAgent:
    """Drives one session's reasoning loop and owns its phase transitions."""

    def __init__(
        self,
        ai_service: AIService,
        session_state: SessionStateStore,
        resilience: ResilienceStrategy,
        *,
        memory: AgentMemoryStore | None = None,
        quality_gate: QualityGate | None = None,
        trace_log: TraceLog | None = None,
        planner: SessionPlanner | None = None,
        intent_classifier: IntentClassifier | None = None,
        prompts: PromptLibrary | None = None,
        settings: ConductorSettings | None = None,
        retry_wait: wait_base | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ai_service = ai_service
        self.session_state = session_state
        self.resilience = resilience
        self.memory = memory
        self.quality_gate = quality_gate or QualityGate()
        self.trace_log = trace_log
        self.planner = planner or SessionPlanner()
        self.intent_classifier = intent_classifier or IntentClassifier()
        self.prompts = prompts or DEFAULT_PROMPTS
        self.settings = settings or ConductorSettings()
        self.retry_wait = retry_wait or wait_exponential(
            multiplier=self.settings.retry_backoff_seconds,
            max=self.settings.retry_backoff_max_seconds,
        )
        self.clock = clock

    # ------------------------------------------------------------------
    # Exposed operations
    # ------------------------------------------------------------------

    async def conduct_story_session(
        self, config: SessionConfig, context: AgentContext
    ) -> SessionResult:
        """Start (or resume) a session, build its agenda and take the first reasoning step."""
        refined = refine_story_request(config, context)
        session_id = context.session_id or new_id()
        state = await self.session_state.get(session_id)

        if state is None:
            agenda = self.planner.generate_agenda(refined.duration)
            state = SessionState(
                session_id=session_id,
                user_id=context.user_id,
                phase=SessionPhase.ONBOARDING,
                active_intent=ActiveIntent.LISTEN,
                active_goals=agenda,
                context={
                    "theme": refined.theme,
                    "duration": refined.duration.value,
                    "style": refined.style,
                    "child_name": refined.child_name or context.child_name,
                    "child_age": refined.child_age if refined.child_age is not None else context.child_age,
                    SESSION_STARTED_KEY: self.clock().isoformat(),
                },
            )
            log_deterministic(
                f"[Conductor] New {refined.duration.value} session {session_id} "
                f"with {len(agenda)} agenda items"
            )
        else:
            state.context["theme"] = refined.theme
            log_deterministic(f"[Conductor] Resuming session {session_id} in {state.phase.value}")

        self._advance_by_agenda(state)
        trigger = fill_placeholders(START_STORY_TRIGGER, {"theme": refined.theme})
        rendered = await self._render_turn_prompt(state, context, trigger, UserIntent.DIRECT)
        outcome = await self._reason(rendered)

        self._apply_action(state, outcome.trace.action)
        await self.session_state.set(state)
        await self._record(state, [outcome.trace], agent_reply=outcome.reply)

        return SessionResult(
            session_id=session_id,
            reasoning_trace=[outcome.trace],
            reply=outcome.reply,
            agenda=list(state.active_goals),
            phase=state.phase,
            contextual_notes=outcome.contextual_notes,
        )

    async def process_turn(self, message: str, context: AgentContext) -> TurnResult:
        """Handle one user utterance and return the reply with its trace."""
        intent = self.intent_classifier.classify(message)
        session_id = context.session_id or new_id()
        state = await self.session_state.get(session_id)
        if state is None:
            state = SessionState(
                session_id=session_id,
                user_id=context.user_id,
                phase=SessionPhase.ONBOARDING,
                active_goals=self.planner.generate_agenda(DurationClass.MEDIUM),
                context={SESSION_STARTED_KEY: self.clock().isoformat()},
            )

        state.active_intent = (
            ActiveIntent.INTERRUPT if intent is UserIntent.INTERRUPT else ActiveIntent.LISTEN
        )
        self._advance_by_agenda(state)
        log_deterministic(
            f"[Conductor] Turn for {session_id}: intent={intent.value} phase={state.phase.value}"
        )

        rendered = await self._render_turn_prompt(state, context, message, intent)
        outcome = await self._reason(rendered)

        self._apply_action(state, outcome.trace.action)
        await self.session_state.set(state)
        await self._record(state, [outcome.trace], user_message=message, agent_reply=outcome.reply)

        return TurnResult(
            session_id=session_id,
            reply=outcome.reply,
            trace=[outcome.trace],
            intent=intent,
            phase=state.phase,
            failed=outcome.failed,
            contextual_notes=outcome.contextual_notes,
        )

    async def generate_suggestions(self, context: AgentContext) -> List[Suggestion]:
        """Propose story themes, each with visible reasoning.

        Falls back to the child's recent interests when the model is
        unavailable; returns an empty list when there is nothing to go on.
        """
        memory_context = await self._memory_context(
            context, " ".join(context.recent_interests) or WILDCARD_QUERY
        )
        rendered = render_prompt(
            self.prompts.get("suggestions"),
            {
                "child_name": context.child_name,
                "child_age": context.child_age,
                "current_mood": context.current_mood,
                "recent_interests": context.recent_interests,
                "memory_context": memory_context,
            },
        )
        try:
            batch = await self.ai_service.generate_structured(
                SuggestionBatch,
                system_prompt=rendered.system,
                user_prompt=rendered.user,
                model_tier=ModelTier.FLASH,
            )
            suggestions = batch.suggestions[:MAX_SUGGESTIONS]
            log_llm(f"[Conductor] Generated {len(suggestions)} suggestion(s)")
            return suggestions
        except Exception as exc:
            log_warning(f"[Conductor] Suggestion generation failed, using interests: {exc}")

        return [
            Suggestion(
                title=f"A calm story about {interest}",
                theme=interest,
                reasoning=f"{context.child_name or 'The child'} recently showed interest in {interest}.",
                confidence=0.5,
            )
            for interest in context.recent_interests[:MAX_SUGGESTIONS]
        ]

    async def handle_sleep_cue_detected(self, event: DomainEvent) -> None:
        """Force the session toward ASLEEP, whatever phase it is in."""
        payload = SleepCuePayload.model_validate(event.payload)
        session_id = payload.context.get("session_id") or event.request_id
        state = await self.session_state.get(session_id) if session_id else None
        if state is None:
            log_warning(f"[Conductor] Sleep cue for unknown session {session_id!r}; ignoring")
            return

        context = dict(state.context)
        context["sleep_detected_at"] = event.timestamp.isoformat()
        context["sleep_confidence"] = payload.confidence
        context[PACING_OVERRIDE_KEY] = SLEEP_PACING_OVERRIDE
        await self.session_state.patch(
            session_id,
            {
                "phase": SessionPhase.ASLEEP,
                "active_intent": ActiveIntent.IDLE,
                "context": context,
            },
        )
        log_success(f"[Conductor] Sleep detected for {session_id}; phase -> ASLEEP")

    def subscribe(self, event_bus: EventBus) -> Callable[[], None]:
        return event_bus.subscribe(SLEEP_CUE_DETECTED, self.handle_sleep_cue_detected)

    # ------------------------------------------------------------------
    # Reasoning with recovery
    # ------------------------------------------------------------------

    async def _reason(self, rendered: RenderedPrompt) -> _ReasoningOutcome:
        ledger = _RecoveryLedger()
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(_RetryRequested),
                stop=stop_after_attempt(self.settings.max_turn_attempts),
                wait=self.retry_wait,
                reraise=True,
            ):
                with attempt:
                    return await self._attempt(rendered, ledger)
        except _RetryRequested:
            log_error(
                f"[Conductor] Attempt cap ({self.settings.max_turn_attempts}) reached; falling back"
            )
            ledger.last_action = CorrectionAction.FALLBACK
            return self._fallback_outcome(ledger)

        raise RuntimeError("Conductor retry loop exited unexpectedly")

    async def _attempt(self, rendered: RenderedPrompt, ledger: _RecoveryLedger) -> _ReasoningOutcome:
        user_prompt = rendered.user
        if ledger.instructions:
            user_prompt = "\n\n".join([user_prompt, *ledger.instructions])

        started = time.perf_counter()
        try:
            thought = await self.ai_service.generate_thought(
                system_prompt=rendered.system,
                user_prompt=user_prompt,
                model_tier=ledger.tier,
                timeout_seconds=ledger.timeout_seconds,
            )
            self.quality_gate.check_metric("LATENCY_MS", (time.perf_counter() - started) * 1000)
        except QualityGateError as exc:
            ledger.last_failure = FailureType.QUALITY_BREACH
            ledger.last_action = CorrectionAction.DEGRADE_SERVICE
            ledger.attempt += 1
            return self._safe_mode_outcome(ledger, str(exc))
        except Exception as exc:
            plan = await self._plan_recovery(exc, ledger)
            return self._execute_plan(plan, ledger, exc)

        return self._success_outcome(thought, ledger)

    async def _plan_recovery(self, error: Exception, ledger: _RecoveryLedger) -> CorrectionPlan:
        failure = classify_failure(error)
        ledger.attempt += 1
        ledger.last_failure = failure
        event = ResilienceEvent(
            type=failure,
            context={"error": str(error), "model": ledger.tier.value},
            attempt=ledger.attempt,
            cost_so_far=ledger.cost_usd,
        )
        log_error(
            f"[Conductor] Thought failed ({failure.value}, attempt {ledger.attempt}): {error}"
        )
        plan = await self.resilience.assess_failure(event)
        ledger.cost_usd += plan.estimated_cost
        ledger.last_action = plan.action
        log_deterministic(
            f"[Conductor] Correction plan: {plan.action.value} on {plan.model.value} "
            f"(ledger ${ledger.cost_usd:.5f})"
        )
        return plan

    def _execute_plan(
        self, plan: CorrectionPlan, ledger: _RecoveryLedger, error: Exception
    ) -> _ReasoningOutcome:
        if plan.action is CorrectionAction.RETRY:
            ledger.tier = plan.model
            timeout_ms = plan.parameters.get("timeout_ms")
            if timeout_ms:
                ledger.timeout_seconds = float(timeout_ms) / 1000
            raise _RetryRequested(str(error))

        if plan.action is CorrectionAction.SELF_CORRECT:
            ledger.tier = plan.model
            instruction = plan.parameters.get("instruction") or "Return valid JSON only."
            detail = plan.parameters.get("error_context")
            ledger.instructions.append(
                f"CORRECTION: {instruction}." + (f" Previous error: {detail}" if detail else "")
            )
            raise _RetryRequested(str(error))

        if plan.action is CorrectionAction.FALLBACK:
            return self._fallback_outcome(ledger)

        if plan.action is CorrectionAction.ABORT:
            return self._abort_outcome(ledger)

        return self._safe_mode_outcome(ledger, f"service degraded after {ledger.last_failure.value}")

    def _success_outcome(self, thought: AgentThought, ledger: _RecoveryLedger) -> _ReasoningOutcome:
        trace = ReasoningTrace(
            goals_considered=thought.goals_considered,
            conflict_detected=bool(thought.conflicts_identified),
            conflicts_identified=thought.conflicts_identified,
            trade_off_made=thought.trade_off_made,
            thought=thought.thought,
            action=thought.action,
            confidence=thought.confidence,
            resilience_meta=ledger.meta(),
        )
        return _ReasoningOutcome(trace=trace, reply=thought.reply or SAFETY_FALLBACK)

    def _safe_mode_outcome(self, ledger: _RecoveryLedger, detail: str) -> _ReasoningOutcome:
        log_error(f"[Conductor] Entering SAFE_MODE: {detail}")
        trace = ReasoningTrace(
            goals_considered=["RELAXATION"],
            thought=f"Quality Gate Breached ({detail}). Skipping further model calls this turn.",
            action=SAFE_MODE_ACTION,
            confidence=1.0,
            resilience_meta=ledger.meta(),
        )
        return _ReasoningOutcome(trace=trace, reply=SAFE_MODE_REPLY, contextual_notes=SAFE_MODE_NOTES)

    def _fallback_outcome(self, ledger: _RecoveryLedger) -> _ReasoningOutcome:
        failure = ledger.last_failure.value if ledger.last_failure else "UNKNOWN"
        trace = ReasoningTrace(
            goals_considered=["RELAXATION"],
            thought=f"Recovered from {failure} with the precomputed safe story.",
            action=FALLBACK_ACTION,
            confidence=1.0,
            resilience_meta=ledger.meta(),
        )
        return _ReasoningOutcome(trace=trace, reply=SAFETY_FALLBACK)

    def _abort_outcome(self, ledger: _RecoveryLedger) -> _ReasoningOutcome:
        failure = ledger.last_failure.value if ledger.last_failure else "UNKNOWN"
        log_error(f"[Conductor] Turn aborted after {failure}")
        trace = ReasoningTrace(
            thought=f"Turn aborted: {failure} is not recoverable within budget.",
            action=ABORT_ACTION,
            confidence=0.0,
            resilience_meta=ledger.meta(),
        )
        return _ReasoningOutcome(trace=trace, reply=ABORT_REPLY, failed=True)

    # ------------------------------------------------------------------
    # Phase machine
    # ------------------------------------------------------------------

    def _elapsed_minutes(self, state: SessionState) -> float:
        started = state.context.get(SESSION_STARTED_KEY)
        if not started:
            return 0.0
        delta = self.clock() - datetime.fromisoformat(started)
        return max(delta.total_seconds() / 60, 0.0)

    def _move_to(self, state: SessionState, phase: SessionPhase) -> None:
        if PHASE_ORDER[phase] <= PHASE_ORDER[state.phase]:
            return
        log_deterministic(f"[Conductor] Phase {state.phase.value} -> {phase.value}")
        state.phase = phase
        self._sync_goal_status(state)

    def _sync_goal_status(self, state: SessionState) -> None:
        rank = PHASE_ORDER[state.phase]
        for goal in state.active_goals:
            goal_rank = PHASE_ORDER[goal.phase]
            goal.status = "DONE" if goal_rank < rank else "ACTIVE" if goal_rank == rank else "PENDING"

    def _advance_by_agenda(self, state: SessionState) -> None:
        goal = goal_for_elapsed(state.active_goals, self._elapsed_minutes(state))
        if goal is not None:
            self._move_to(state, goal.phase)
        self._sync_goal_status(state)

    def _apply_action(self, state: SessionState, action: str) -> None:
        floor = ACTION_PHASE_FLOOR.get(action)
        if floor is not None:
            self._move_to(state, floor)

    def _current_goal(self, state: SessionState) -> Optional[ActiveGoal]:
        for goal in state.active_goals:
            if goal.status == "ACTIVE":
                return goal
        return None

    # ------------------------------------------------------------------
    # Prompt context and records
    # ------------------------------------------------------------------

    async def _memory_context(self, context: AgentContext, query: str) -> str:
        if self.memory is None:
            return ""
        try:
            records = await self.memory.retrieve(
                query, MemoryScope(user_id=context.user_id), MemoryKind.SEMANTIC, 5
            )
        except Exception as exc:
            log_warning(f"[Conductor] Memory lookup failed: {exc}")
            return ""
        return "; ".join(record.content for record in records)

    async def _history(self, state: SessionState) -> str:
        if self.memory is None:
            return ""
        scope = MemoryScope(user_id=state.user_id, session_id=state.session_id)
        try:
            records = await self.memory.retrieve(
                WILDCARD_QUERY, scope, MemoryKind.EPISODIC, HISTORY_TURNS
            )
        except Exception as exc:
            log_warning(f"[Conductor] History lookup failed: {exc}")
            return ""
        return " | ".join(record.content for record in records)

    async def _render_turn_prompt(
        self,
        state: SessionState,
        context: AgentContext,
        message: str,
        intent: UserIntent,
    ) -> RenderedPrompt:
        goal = self._current_goal(state)
        variables: Dict[str, Any] = {
            "user_message": message,
            "child_name": context.child_name or state.context.get("child_name") or "Unknown",
            "child_age": context.child_age if context.child_age is not None else state.context.get("child_age", "?"),
            "current_mood": context.current_mood or "Unknown",
            "phase": state.phase.value,
            "active_goal": goal.goal if goal else "None",
            "intent": intent.value,
            "env_context": context.extra.get("environment") or "Unknown",
            "memory_context": await self._memory_context(context, message),
            "history": await self._history(state),
        }
        rendered = render_prompt(self.prompts.get("conductor_turn"), variables)
        override = state.context.get(PACING_OVERRIDE_KEY)
        if override:
            rendered = RenderedPrompt(system=f"{rendered.system}\n\n{override}", user=rendered.user)
        return rendered

    async def _record(
        self,
        state: SessionState,
        traces: List[ReasoningTrace],
        *,
        user_message: Optional[str] = None,
        agent_reply: Optional[str] = None,
    ) -> None:
        if self.trace_log is not None:
            try:
                await self.trace_log.append(state.session_id, traces)
            except Exception as exc:
                log_error(f"[Conductor] Trace log append failed: {exc}")

        if self.memory is None:
            return

        trace_id = traces[-1].id
        scope = MemoryScope(user_id=state.user_id, session_id=state.session_id)
        lines = []
        if user_message:
            lines.append(("user", f"Child: {user_message}"))
        if agent_reply:
            lines.append(("agent", f"Conductor: {agent_reply}"))
        try:
            for role, content in lines:
                await self.memory.store(
                    content,
                    MemoryKind.EPISODIC,
                    scope,
                    {TRACE_ID_KEY: trace_id, "role": role},
                )
        except Exception as exc:
            log_error(f"[Conductor] Episodic record failed: {exc}")
        else:
            log_info(f"[Conductor] Recorded {len(lines)} episodic line(s) for trace {trace_id}")
