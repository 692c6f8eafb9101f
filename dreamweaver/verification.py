"""
Three-stage content gate: RULE, then MODEL, then HUMAN escalation.

Stages run in order of cost and short-circuit on the first decisive
result. Rule checks are deterministic and free, so trivially invalid
content never reaches the model. Ambiguous model approvals are never
granted; they are escalated to the human review sink and reported as
not approved.
"""

from __future__ import annotations

import asyncio
import json
from typing import Callable, Dict, List, Mapping, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field

from dreamweaver.cognition.prompts import DEFAULT_PROMPTS, PromptLibrary
from dreamweaver.cognition.renderers import render_prompt
from dreamweaver.llm_calls import AIService
from dreamweaver.logging_utils import log_deterministic, log_error, log_warning
from dreamweaver.schemas import (
    ContentType,
    ModelTier,
    ReviewItem,
    VerifiableContent,
    VerificationResult,
    VerificationStage,
)


DEFAULT_CONFIDENCE_THRESHOLD = 0.8
MIN_MOMENT_DESCRIPTION_LENGTH = 10

ContentRule = Callable[[VerifiableContent], bool]


class ModelVerdict(BaseModel):
    """Structured judgment requested from the validator model."""

    model_config = ConfigDict(extra="forbid")

    approved: bool
    reason: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class HumanReviewQueue(Protocol):
    async def enqueue(self, item: ReviewItem) -> None:
        ...


class InMemoryHumanReviewQueue:
    """Review sink that keeps pending items in a list for an operator to drain."""

    def __init__(self) -> None:
        self.items: List[ReviewItem] = []
        self._lock = asyncio.Lock()

    async def enqueue(self, item: ReviewItem) -> None:
        async with self._lock:
            self.items.append(item)

    async def drain(self) -> List[ReviewItem]:
        async with self._lock:
            items, self.items = self.items, []
        return items


def golden_moment_has_description(item: VerifiableContent) -> bool:
    """A moment needs a textual description long enough to mean something."""
    content = item.content
    if not isinstance(content, Mapping):
        return False
    description = content.get("description")
    return isinstance(description, str) and len(description) >= MIN_MOMENT_DESCRIPTION_LENGTH


DEFAULT_RULES: Dict[ContentType, Sequence[ContentRule]] = {
    ContentType.GOLDEN_MOMENT: (golden_moment_has_description,),
    ContentType.SAFETY_ACTION: (),
}


class VerificationPipeline:
    def __init__(
        self,
        ai_service: AIService,
        review_queue: HumanReviewQueue,
        *,
        prompts: PromptLibrary | None = None,
        rules: Mapping[ContentType, Sequence[ContentRule]] | None = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        model_tier: ModelTier = ModelTier.FLASH,
    ):
        self.ai_service = ai_service
        self.review_queue = review_queue
        self.prompts = prompts or DEFAULT_PROMPTS
        self.rules = dict(DEFAULT_RULES if rules is None else rules)
        self.confidence_threshold = confidence_threshold
        self.model_tier = model_tier

    async def verify(self, item: VerifiableContent) -> VerificationResult:
        log_deterministic(f"[VerificationPipeline] Inspecting {item.type.value}...")

        if not self.passes_rules(item):
            return VerificationResult(
                approved=False,
                stage=VerificationStage.RULE,
                reason="Failed static safety rules",
                confidence=1.0,
            )

        verdict = await self.model_check(item)
        if not verdict.approved:
            return VerificationResult(
                approved=False,
                stage=VerificationStage.MODEL,
                reason=verdict.reason or "AI validator rejected",
                confidence=verdict.confidence,
            )

        if verdict.confidence < self.confidence_threshold:
            log_warning("[VerificationPipeline] Low confidence -> flagging for human review")
            await self.review_queue.enqueue(
                ReviewItem(
                    item=item,
                    reason="Low confidence model validation",
                    confidence=verdict.confidence,
                )
            )
            return VerificationResult(
                approved=False,
                stage=VerificationStage.HUMAN,
                reason="Flagged for human review",
                confidence=verdict.confidence,
            )

        return VerificationResult(
            approved=True,
            stage=VerificationStage.MODEL,
            reason="All checks passed",
            confidence=verdict.confidence,
        )

    def passes_rules(self, item: VerifiableContent) -> bool:
        return all(rule(item) for rule in self.rules.get(item.type, ()))

    async def model_check(self, item: VerifiableContent) -> ModelVerdict:
        """Ask the validator model for a verdict; any failure counts as a rejection."""
        rendered = render_prompt(
            self.prompts.get("verification_validator"),
            {
                "type": item.type.value,
                "content_json": json.dumps(
                    {"type": item.type.value, "content": item.content, "metadata": item.metadata},
                    default=str,
                ),
            },
        )
        try:
            return await self.ai_service.generate_structured(
                ModelVerdict,
                system_prompt=rendered.system,
                user_prompt=rendered.user,
                model_tier=self.model_tier,
            )
        except Exception as exc:
            log_error(f"[VerificationPipeline] Model check failed: {exc}")
            return ModelVerdict(approved=False, reason="Validator error", confidence=0.0)
