"""Golden moment curation: find one cherishable interaction and verify it."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dreamweaver.cognition.prompts import DEFAULT_PROMPTS, PromptLibrary
from dreamweaver.cognition.renderers import render_prompt
from dreamweaver.llm_calls import AIService
from dreamweaver.logging_utils import log_error, log_info, log_success, log_warning
from dreamweaver.memory import WILDCARD_QUERY, AgentMemoryStore
from dreamweaver.schemas import (
    ContentType,
    GoldenMoment,
    MemoryKind,
    MemoryScope,
    ModelTier,
    VerifiableContent,
)
from dreamweaver.verification import VerificationPipeline


MOMENT_WINDOW = 20
MIN_CANDIDATE_CONFIDENCE = 0.6


class MomentCandidate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    found: bool
    description: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class MomentCurator:
    def __init__(
        self,
        memory: AgentMemoryStore,
        ai_service: AIService,
        verification: VerificationPipeline,
        *,
        prompts: PromptLibrary | None = None,
        model_tier: ModelTier = ModelTier.FLASH,
    ):
        self.memory = memory
        self.ai_service = ai_service
        self.verification = verification
        self.prompts = prompts or DEFAULT_PROMPTS
        self.model_tier = model_tier

    async def analyze_session(self, session_id: str, user_id: str) -> Optional[GoldenMoment]:
        """Return a verified golden moment for the session, or None.

        Candidates the model is unsure about, or that the verification
        pipeline does not approve, are dropped. Errors are logged, not raised.
        """
        log_info(f"[MemoryCurator] Analyzing session {session_id} for moments...")
        scope = MemoryScope(user_id=user_id, session_id=session_id)

        try:
            memories = await self.memory.retrieve(
                WILDCARD_QUERY, scope, MemoryKind.EPISODIC, MOMENT_WINDOW
            )
            if not memories:
                log_info("[MemoryCurator] No memories found for analysis.")
                return None

            rendered = render_prompt(
                self.prompts.get("memory_curator"),
                {"transcript": "\n".join(record.content for record in memories)},
            )
            candidate = await self.ai_service.generate_structured(
                MomentCandidate,
                system_prompt=rendered.system,
                user_prompt=rendered.user,
                model_tier=self.model_tier,
            )

            description = candidate.description.strip()
            if not (candidate.found and description and candidate.confidence >= MIN_CANDIDATE_CONFIDENCE):
                log_info("[MemoryCurator] No significant moments detected.")
                return None

            verification = await self.verification.verify(
                VerifiableContent(
                    type=ContentType.GOLDEN_MOMENT,
                    content={"description": description},
                    metadata={"user_id": user_id, "session_id": session_id},
                )
            )
            if not verification.approved:
                log_warning(
                    f"[MemoryCurator] Moment rejected at {verification.stage.value}: {verification.reason}"
                )
                return None

            moment = GoldenMoment(
                user_id=user_id,
                session_id=session_id,
                description=description,
                confidence=candidate.confidence,
                verification=verification,
            )
            log_success(f"[MemoryCurator] Golden moment accepted: {moment.id}")
            return moment
        except Exception as exc:
            log_error(f"[MemoryCurator] Failed to analyze session {session_id}: {exc}")
            return None
