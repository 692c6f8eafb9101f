"""
AI capability used by the conductor and its background helpers.

This module provides:
- The ``AIService`` protocol (thought, text and structured calls)
- ``LLMAIService``, which routes model tiers onto mirascope providers
  (``flash``/``pro``) and a local Ollama server (``edge``)
- ``AIServiceError``, the normalized provider failure

Every failure raised here can be mapped onto a ``FailureType`` by
``dreamweaver.resilience.classify_failure``.
"""

import asyncio
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from dreamweaver.config import ConductorSettings
from dreamweaver.llm_utils import (
    LLM_TIMEOUT_SECONDS,
    LOCAL_PROVIDER,
    call_llm_text,
    call_llm_with_retries,
)
from dreamweaver.local_llm import LocalLLMError
from dreamweaver.logging_utils import log_llm
from dreamweaver.schemas import AgentThought, ModelTier


ModelT = TypeVar("ModelT", bound=BaseModel)


class AIServiceError(RuntimeError):
    """Provider failure with the HTTP status (when there was one) preserved."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AIService(Protocol):
    """Protocol for the generative capability. All methods may raise."""

    async def generate_thought(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model_tier: ModelTier = ModelTier.PRO,
        timeout_seconds: float | None = None,
    ) -> AgentThought:
        ...

    async def generate_text(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model_tier: ModelTier = ModelTier.PRO,
    ) -> str:
        ...

    async def generate_structured(
        self,
        response_model: type[ModelT],
        *,
        system_prompt: str,
        user_prompt: str,
        model_tier: ModelTier = ModelTier.FLASH,
    ) -> ModelT:
        ...


class LLMAIService:
    """Default ``AIService`` backed by mirascope and a local Ollama endpoint."""

    def __init__(self, settings: ConductorSettings, *, structured_attempts: int = 3):
        self.settings = settings
        self.structured_attempts = structured_attempts

    def resolve_tier(self, tier: ModelTier) -> tuple[str, str, str | None]:
        """Return ``(provider, model, base_url)`` for a tier."""
        settings = self.settings
        if tier is ModelTier.EDGE:
            return LOCAL_PROVIDER, settings.edge_model, settings.ollama_base_url
        model = settings.flash_model if tier is ModelTier.FLASH else settings.pro_model
        base_url = settings.ollama_base_url if settings.llm_provider == LOCAL_PROVIDER else None
        return settings.llm_provider, model, base_url

    async def _guarded(self, call):
        try:
            return await call
        except (ValidationError, asyncio.TimeoutError, LocalLLMError, AIServiceError):
            raise
        except Exception as exc:
            raise AIServiceError(
                f"{type(exc).__name__}: {exc}", status_code=getattr(exc, "status_code", None)
            ) from exc

    async def generate_thought(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model_tier: ModelTier = ModelTier.PRO,
        timeout_seconds: float | None = None,
    ) -> AgentThought:
        provider, model, base_url = self.resolve_tier(model_tier)
        log_llm(f"[AIService] Thought via {model_tier.value} ({provider}/{model})")
        # Single attempt: schema drift is handed to the resilience layer.
        return await self._guarded(
            call_llm_with_retries(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                llm_provider=provider,
                llm_model=model,
                response_model=AgentThought,
                max_attempts=1,
                base_url=base_url,
                timeout_seconds=timeout_seconds or LLM_TIMEOUT_SECONDS,
            )
        )

    async def generate_text(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model_tier: ModelTier = ModelTier.PRO,
    ) -> str:
        provider, model, base_url = self.resolve_tier(model_tier)
        log_llm(f"[AIService] Text via {model_tier.value} ({provider}/{model})")
        return await self._guarded(
            call_llm_text(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                llm_provider=provider,
                llm_model=model,
                base_url=base_url,
            )
        )

    async def generate_structured(
        self,
        response_model: type[ModelT],
        *,
        system_prompt: str,
        user_prompt: str,
        model_tier: ModelTier = ModelTier.FLASH,
    ) -> ModelT:
        provider, model, base_url = self.resolve_tier(model_tier)
        log_llm(
            f"[AIService] {response_model.__name__} via {model_tier.value} ({provider}/{model})"
        )
        return await self._guarded(
            call_llm_with_retries(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                llm_provider=provider,
                llm_model=model,
                response_model=response_model,
                max_attempts=self.structured_attempts,
                base_url=base_url,
            )
        )
