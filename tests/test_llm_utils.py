"""Unit tests for the LLM retry helper."""

import pytest
from pydantic import BaseModel, ValidationError

from dreamweaver.llm_utils import call_llm_text, call_llm_with_retries
from dreamweaver.local_llm import LocalLLMError


class DummyModel(BaseModel):
    content: str


def _fake_decorator(caller):
    def fake_decorator(*, provider, model, response_model=None):
        def wrapper(fn):
            async def inner(prompt: str):
                return await caller(prompt)

            return inner

        return wrapper

    return fake_decorator


def _validation_error() -> ValidationError:
    try:
        DummyModel.model_validate({})
    except ValidationError as exc:
        return exc
    raise AssertionError("expected a validation error")


@pytest.mark.asyncio
async def test_call_llm_with_retries_success(monkeypatch):
    recorded_prompts: list[str] = []

    async def fake_caller(prompt: str) -> DummyModel:
        recorded_prompts.append(prompt)
        return DummyModel(content="ok")

    monkeypatch.setattr("dreamweaver.llm_utils.llm.call", _fake_decorator(fake_caller))

    result = await call_llm_with_retries(
        system_prompt="System context",
        user_prompt="What now?",
        llm_provider="openai",
        llm_model="gpt-5-nano",
        response_model=DummyModel,
    )

    assert result.content == "ok"
    assert recorded_prompts == ["System context\n\nWhat now?"]


@pytest.mark.asyncio
async def test_call_llm_with_retries_injects_feedback(monkeypatch):
    attempts: list[str] = []
    validation_error = _validation_error()

    async def fake_caller(prompt: str) -> DummyModel:
        attempts.append(prompt)
        if len(attempts) == 1:
            raise validation_error
        return DummyModel(content="fixed")

    monkeypatch.setattr("dreamweaver.llm_utils.llm.call", _fake_decorator(fake_caller))

    result = await call_llm_with_retries(
        system_prompt="System",
        user_prompt="User",
        llm_provider="openai",
        llm_model="gpt-5-nano",
        response_model=DummyModel,
    )

    assert result.content == "fixed"
    assert len(attempts) == 2
    assert "The JSON you returned last time was rejected by the schema validator." in attempts[1]
    assert "- content: Field required" in attempts[1]


@pytest.mark.asyncio
async def test_single_attempt_reraises_validation_error(monkeypatch):
    calls: list[str] = []
    validation_error = _validation_error()

    async def fake_caller(prompt: str) -> DummyModel:
        calls.append(prompt)
        raise validation_error

    monkeypatch.setattr("dreamweaver.llm_utils.llm.call", _fake_decorator(fake_caller))

    with pytest.raises(ValidationError):
        await call_llm_with_retries(
            system_prompt="System",
            user_prompt="User",
            llm_provider="openai",
            llm_model="gpt-5-nano",
            response_model=DummyModel,
            max_attempts=1,
        )

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_call_llm_with_retries_local_provider(monkeypatch):
    captured_kwargs: dict[str, object] = {}

    async def fake_local_call(
        *, system_prompt, user_prompt, llm_model, base_url=None, json_mode=False, timeout=120.0
    ):
        captured_kwargs.update(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            llm_model=llm_model,
            base_url=base_url,
            json_mode=json_mode,
            timeout=timeout,
        )
        return '{"content":"ok"}'

    def fail_decorator(*args, **kwargs):
        raise AssertionError("remote provider path should not be used for ollama")

    monkeypatch.setattr("dreamweaver.llm_utils.call_ollama_chat", fake_local_call)
    monkeypatch.setattr("dreamweaver.llm_utils.llm.call", fail_decorator)

    result = await call_llm_with_retries(
        system_prompt="System context",
        user_prompt="User payload",
        llm_provider="ollama",
        llm_model="llama3.1",
        response_model=DummyModel,
        timeout_seconds=5,
    )

    assert result.content == "ok"
    assert captured_kwargs["system_prompt"] == "System context"
    assert captured_kwargs["user_prompt"] == "User payload"
    assert captured_kwargs["llm_model"] == "llama3.1"
    assert captured_kwargs["json_mode"] is True
    assert captured_kwargs["timeout"] == 5


@pytest.mark.asyncio
async def test_local_provider_error_keeps_status_code(monkeypatch):
    async def failing_local_call(**kwargs):
        raise LocalLLMError("busy", status_code=503)

    monkeypatch.setattr("dreamweaver.llm_utils.call_ollama_chat", failing_local_call)

    with pytest.raises(LocalLLMError) as excinfo:
        await call_llm_with_retries(
            system_prompt="System",
            user_prompt="User",
            llm_provider="ollama",
            llm_model="llama3.1",
            response_model=DummyModel,
        )

    assert excinfo.value.status_code == 503
    assert "llama3.1" in str(excinfo.value)


@pytest.mark.asyncio
async def test_call_llm_text_returns_response_content(monkeypatch):
    class FakeResponse:
        content = "Once upon a time"

    async def fake_caller(prompt: str):
        assert prompt == "Narrate\n\nA dragon"
        return FakeResponse()

    monkeypatch.setattr("dreamweaver.llm_utils.llm.call", _fake_decorator(fake_caller))

    text = await call_llm_text(
        system_prompt="Narrate",
        user_prompt="A dragon",
        llm_provider="anthropic",
        llm_model="claude-haiku",
    )

    assert text == "Once upon a time"
