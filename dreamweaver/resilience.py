"""
Failure classification and recovery planning.

``ResilienceStrategy`` is the replaceable decision-maker: given a
:class:`ResilienceEvent` it returns a :class:`CorrectionPlan`. The
conductor owns the consumption side (attempt counting, cost accumulation
and executing the plan). ``ResilienceEngine`` is the default FinOps-first
policy.
"""

from __future__ import annotations

import asyncio
import json
from typing import Protocol

from pydantic import ValidationError

from dreamweaver.local_llm import LocalLLMError
from dreamweaver.logging_utils import log_deterministic, log_warning
from dreamweaver.quality_gate import QualityGateError
from dreamweaver.schemas import (
    CorrectionAction,
    CorrectionPlan,
    FailureType,
    ModelTier,
    ResilienceEvent,
)


DEFAULT_TURN_BUDGET_USD = 0.05
DEFAULT_MAX_ATTEMPTS = 3
SELF_CORRECT_COST_USD = 0.00005


class ResilienceStrategy(Protocol):
    """Protocol for recovery planners.

    Implementations may be rule tables, learned policies or remote
    services. They must not raise; every failure maps to some plan.
    """

    async def assess_failure(self, event: ResilienceEvent) -> CorrectionPlan:
        ...


# (failure type, message fragments) checked in order; first match wins.
_MESSAGE_RULES: tuple[tuple[FailureType, tuple[str, ...]], ...] = (
    (FailureType.API_RATE_LIMIT, ("429", "rate limit", "quota")),
    (FailureType.API_AUTH_ERROR, ("401", "403", "auth", "permission")),
    (FailureType.API_SERVER_ERROR, ("500", "503", "internal", "unavailable")),
    (FailureType.TOKEN_LIMIT, ("token limit", "too many tokens", "context length", "maximum context")),
    (FailureType.API_BAD_REQUEST, ("400", "bad request", "invalid argument")),
    (FailureType.SCHEMA_DRIFT, ("json", "parse")),
    (FailureType.SAFETY_VIOLATION, ("safety", "blocked")),
    (FailureType.NETWORK_TIMEOUT, ("timeout", "timed out")),
    (FailureType.QUALITY_BREACH, ("quality gate", "breach")),
)


def classify_message(message: str) -> FailureType:
    """Heuristic classification from an error message alone."""
    lowered = (message or "").lower()
    for failure_type, fragments in _MESSAGE_RULES:
        if any(fragment in lowered for fragment in fragments):
            return failure_type
    return FailureType.UNKNOWN


def _classify_status(status_code: int) -> FailureType | None:
    if status_code == 429:
        return FailureType.API_RATE_LIMIT
    if status_code in (401, 403):
        return FailureType.API_AUTH_ERROR
    if status_code == 413:
        return FailureType.TOKEN_LIMIT
    if status_code >= 500:
        return FailureType.API_SERVER_ERROR
    if status_code >= 400:
        return FailureType.API_BAD_REQUEST
    return None


def classify_failure(error: BaseException) -> FailureType:
    """Map an exception raised by the AI capability onto the closed failure set.

    Exception type wins over status code, which wins over message text.
    """
    if isinstance(error, QualityGateError):
        return FailureType.QUALITY_BREACH
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return FailureType.NETWORK_TIMEOUT
    if isinstance(error, (ValidationError, json.JSONDecodeError)):
        return FailureType.SCHEMA_DRIFT

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        by_status = _classify_status(status_code)
        if by_status is not None:
            return by_status

    if isinstance(error, LocalLLMError):
        # Local endpoint unreachable or returned an unusable envelope.
        return FailureType.API_SERVER_ERROR

    return classify_message(str(error))


class ResilienceEngine:
    """Default recovery policy: budget ceiling, attempt ceiling, then per-type rules."""

    def __init__(
        self,
        *,
        budget_usd: float = DEFAULT_TURN_BUDGET_USD,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.budget_usd = budget_usd
        self.max_attempts = max_attempts

    async def assess_failure(self, event: ResilienceEvent) -> CorrectionPlan:
        failure_type = event.type
        error = event.context.get("error")
        if failure_type is FailureType.UNKNOWN and error:
            failure_type = classify_message(str(error))
            log_deterministic(
                f"[ResilienceEngine] Refined failure type from UNKNOWN to {failure_type.value}"
            )

        log_warning(
            f"[ResilienceEngine] Assessing failure: {failure_type.value} "
            f"(attempt={event.attempt}, cost=${event.cost_so_far:.5f})"
        )

        if event.cost_so_far > self.budget_usd:
            log_warning("[ResilienceEngine] FinOps budget exceeded. Aborting.")
            return CorrectionPlan(action=CorrectionAction.ABORT, model=ModelTier.EDGE)

        if event.attempt >= self.max_attempts:
            log_warning("[ResilienceEngine] Max attempts reached. Falling back.")
            return CorrectionPlan(action=CorrectionAction.FALLBACK, model=ModelTier.EDGE)

        if failure_type is FailureType.SCHEMA_DRIFT:
            return CorrectionPlan(
                action=CorrectionAction.SELF_CORRECT,
                model=ModelTier.FLASH,
                estimated_cost=SELF_CORRECT_COST_USD,
                parameters={"instruction": "Fix the JSON syntax", "error_context": error},
            )

        if failure_type in (FailureType.NETWORK_TIMEOUT, FailureType.API_SERVER_ERROR):
            return CorrectionPlan(
                action=CorrectionAction.RETRY,
                model=ModelTier.FLASH,
                parameters={"timeout_ms": 5000 * (event.attempt + 1)},
            )

        if failure_type is FailureType.API_RATE_LIMIT:
            return CorrectionPlan(
                action=CorrectionAction.RETRY,
                model=ModelTier.FLASH,
                parameters={"timeout_ms": 1000 * (2 ** event.attempt)},
            )

        if failure_type in (
            FailureType.SAFETY_VIOLATION,
            FailureType.API_AUTH_ERROR,
            FailureType.API_BAD_REQUEST,
        ):
            return CorrectionPlan(action=CorrectionAction.FALLBACK, model=ModelTier.EDGE)

        if failure_type is FailureType.TOKEN_LIMIT:
            return CorrectionPlan(action=CorrectionAction.ABORT, model=ModelTier.EDGE)

        if failure_type is FailureType.QUALITY_BREACH:
            return CorrectionPlan(action=CorrectionAction.DEGRADE_SERVICE, model=ModelTier.EDGE)

        log_warning(
            f"[ResilienceEngine] Unknown failure type: {failure_type.value}. Defaulting to fallback."
        )
        return CorrectionPlan(action=CorrectionAction.FALLBACK, model=ModelTier.EDGE)
