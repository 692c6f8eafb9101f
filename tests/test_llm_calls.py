"""Tests for tier routing and error normalization in LLMAIService."""

import pytest

from dreamweaver.config import ConductorSettings
from dreamweaver.llm_calls import AIServiceError, LLMAIService
from dreamweaver.local_llm import LocalLLMError
from dreamweaver.resilience import classify_failure
from dreamweaver.schemas import AgentThought, FailureType, ModelTier, SuggestionBatch


SETTINGS = ConductorSettings(
    llm_provider="anthropic",
    pro_model="big-model",
    flash_model="small-model",
    edge_model="llama3.1",
    ollama_base_url="http://edge:11434",
)


def test_resolve_tier_routes_edge_to_ollama():
    service = LLMAIService(SETTINGS)

    assert service.resolve_tier(ModelTier.PRO) == ("anthropic", "big-model", None)
    assert service.resolve_tier(ModelTier.FLASH) == ("anthropic", "small-model", None)
    assert service.resolve_tier(ModelTier.EDGE) == ("ollama", "llama3.1", "http://edge:11434")


@pytest.mark.asyncio
async def test_generate_thought_uses_single_attempt_and_timeout(monkeypatch):
    captured = {}

    async def fake_call_llm_with_retries(**kwargs):
        captured.update(kwargs)
        return AgentThought(thought="calm", action="REPLY", confidence=0.8)

    monkeypatch.setattr("dreamweaver.llm_calls.call_llm_with_retries", fake_call_llm_with_retries)

    thought = await LLMAIService(SETTINGS).generate_thought(
        system_prompt="sys", user_prompt="usr", model_tier=ModelTier.FLASH, timeout_seconds=10.0
    )

    assert thought.action == "REPLY"
    assert captured["response_model"] is AgentThought
    assert captured["llm_model"] == "small-model"
    assert captured["max_attempts"] == 1
    assert captured["timeout_seconds"] == 10.0


@pytest.mark.asyncio
async def test_generate_structured_uses_configured_attempts(monkeypatch):
    captured = {}

    async def fake_call_llm_with_retries(**kwargs):
        captured.update(kwargs)
        return SuggestionBatch()

    monkeypatch.setattr("dreamweaver.llm_calls.call_llm_with_retries", fake_call_llm_with_retries)

    await LLMAIService(SETTINGS, structured_attempts=2).generate_structured(
        SuggestionBatch, system_prompt="sys", user_prompt="usr"
    )

    assert captured["max_attempts"] == 2
    assert captured["llm_model"] == "small-model"


@pytest.mark.asyncio
async def test_provider_errors_are_wrapped_with_status(monkeypatch):
    class ProviderError(Exception):
        status_code = 429

    async def fake_call_llm_text(**kwargs):
        raise ProviderError("slow down")

    monkeypatch.setattr("dreamweaver.llm_calls.call_llm_text", fake_call_llm_text)

    with pytest.raises(AIServiceError) as excinfo:
        await LLMAIService(SETTINGS).generate_text(system_prompt="sys", user_prompt="usr")

    assert excinfo.value.status_code == 429
    assert classify_failure(excinfo.value) is FailureType.API_RATE_LIMIT


@pytest.mark.asyncio
async def test_local_errors_pass_through(monkeypatch):
    async def fake_call_llm_with_retries(**kwargs):
        raise LocalLLMError("connection refused")

    monkeypatch.setattr("dreamweaver.llm_calls.call_llm_with_retries", fake_call_llm_with_retries)

    with pytest.raises(LocalLLMError):
        await LLMAIService(SETTINGS).generate_thought(
            system_prompt="sys", user_prompt="usr", model_tier=ModelTier.EDGE
        )
