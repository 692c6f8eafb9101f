"""
The Ralph Loop: episodic to semantic memory consolidation.

A bounded window of a session's raw episodic records is rendered as a
line-numbered transcript. The model extracts facts and must cite the line
each fact came from; that citation is resolved back to the episodic record
so the stored fact carries the ``trace_id`` of the turn that produced it.

Consolidation is advisory background work. Failures are logged and
absorbed, never raised to the caller.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dreamweaver.cognition.prompts import DEFAULT_PROMPTS, PromptLibrary
from dreamweaver.cognition.renderers import render_prompt
from dreamweaver.llm_calls import AIService
from dreamweaver.logging_utils import log_error, log_info, log_success, log_warning
from dreamweaver.memory import WILDCARD_QUERY, AgentMemoryStore
from dreamweaver.schemas import (
    MemoryKind,
    MemoryRecord,
    MemoryScope,
    ModelTier,
    SemanticFact,
    SourceAnchor,
)


DEFAULT_SUMMARY_WINDOW = 50
DEFAULT_FACT_CONFIDENCE = 0.8
TRACE_ID_KEY = "trace_id"


class ExtractedFact(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fact: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    line_reference: int = Field(..., alias="lineReference")


class FactExtraction(BaseModel):
    facts: List[ExtractedFact] = Field(default_factory=list)


def format_transcript(records: List[MemoryRecord]) -> str:
    return "\n".join(f"[Line {index}] {record.content}" for index, record in enumerate(records))


class MemorySummarizationService:
    def __init__(
        self,
        memory: AgentMemoryStore,
        ai_service: AIService,
        *,
        prompts: PromptLibrary | None = None,
        window: int = DEFAULT_SUMMARY_WINDOW,
        model_tier: ModelTier = ModelTier.FLASH,
    ):
        self.memory = memory
        self.ai_service = ai_service
        self.prompts = prompts or DEFAULT_PROMPTS
        self.window = window
        self.model_tier = model_tier

    async def summarize_session(self, session_id: str, user_id: str) -> List[SemanticFact]:
        """Consolidate one session and return the facts that were stored."""
        log_info(f"[RalphLoop] Summarizing session: {session_id}")
        scope = MemoryScope(user_id=user_id, session_id=session_id)
        learned: List[SemanticFact] = []

        try:
            raw_memories = await self.memory.retrieve(
                WILDCARD_QUERY, scope, MemoryKind.EPISODIC, self.window
            )
            if not raw_memories:
                log_info("[RalphLoop] No episodic memories found to summarize.")
                return learned

            rendered = render_prompt(
                self.prompts.get("memory_summarizer"),
                {"transcript": format_transcript(raw_memories)},
            )
            extraction = await self.ai_service.generate_structured(
                FactExtraction,
                system_prompt=rendered.system,
                user_prompt=rendered.user,
                model_tier=self.model_tier,
            )

            for item in extraction.facts:
                trace_id = None
                if 0 <= item.line_reference < len(raw_memories):
                    trace_id = raw_memories[item.line_reference].metadata.get(TRACE_ID_KEY)
                else:
                    log_warning(
                        f"[RalphLoop] Fact cites unknown line reference "
                        f"{item.line_reference}; storing without trace: {item.fact!r}"
                    )

                anchor = SourceAnchor(
                    session_id=session_id,
                    transcript_offset=item.line_reference,
                    trace_id=trace_id,
                )
                # zero and missing confidences both fall back to the default
                fact = SemanticFact(
                    fact=item.fact,
                    confidence=item.confidence or DEFAULT_FACT_CONFIDENCE,
                    source_anchor=anchor,
                )
                await self.memory.store(
                    fact.fact,
                    MemoryKind.SEMANTIC,
                    scope,
                    {"anchor": anchor.model_dump()},
                    confidence=fact.confidence,
                )
                learned.append(fact)
                log_success(
                    f'[RalphLoop] Learned: "{fact.fact}" (from Line {anchor.transcript_offset}, '
                    f"Trace {anchor.trace_id or 'N/A'})"
                )
        except Exception as exc:
            log_error(f"[RalphLoop] Summarization failed for {session_id}: {exc}")

        return learned
