"""Model invocation helpers shared by every tier.

``call_llm_with_retries`` returns a validated pydantic object. When the model's
JSON does not match the schema, the pydantic errors are turned into repair
instructions and appended to the next attempt. ``call_llm_text`` returns
free text. Both route the ``ollama`` provider to the edge helper in
:mod:`dreamweaver.local_llm`; every other provider goes through mirascope.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, TypeVar

from mirascope import llm
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from dreamweaver.local_llm import LocalLLMError, call_ollama_chat
from dreamweaver.logging_utils import debug_llm_enabled, log_error, log_llm


ModelT = TypeVar("ModelT", bound=BaseModel)
LLM_TIMEOUT_SECONDS = 120.0
LOCAL_PROVIDER = "ollama"
PREVIEW_CHARS = 80


@dataclass(slots=True)
class ValidationFeedback:
    """Repair instructions for the model plus the raw issues for the log."""

    llm_text: str
    issues: List[str]


def _preview(value: Any) -> str:
    text = "null" if value is None else repr(value)
    return text if len(text) <= PREVIEW_CHARS else text[: PREVIEW_CHARS - 3] + "..."


def inject_validation_feedback(error: ValidationError) -> ValidationFeedback:
    """Describe each schema violation as one ``path: problem`` line."""

    issues = []
    for detail in error.errors(include_url=False):
        path = ".".join(str(part) for part in detail.get("loc", ())) or "root"
        line = f"{path}: {detail.get('msg', 'invalid value')}"
        if "input" in detail:
            line += f" (got {_preview(detail['input'])})"
        issues.append(line)
    if not issues:
        issues.append("root: the response does not match the schema")

    llm_text = "\n".join(
        [
            "The JSON you returned last time was rejected by the schema validator.",
            "Reply again with JSON only, no prose and no code fences, fixing these problems:",
            *(f"- {issue}" for issue in issues),
        ]
    )
    return ValidationFeedback(llm_text=llm_text, issues=issues)


def combine_prompts(system_prompt: str, user_prompt: str) -> str:
    return "\n\n".join(section for section in (system_prompt, user_prompt) if section)


def _dump_prompt(label: str, system_prompt: str, user_prompt: str) -> None:
    if debug_llm_enabled():
        print(f"----- {label} system -----\n{system_prompt}")
        print(f"----- {label} user -----\n{user_prompt}")


def _structured_invoker(
    *,
    llm_provider: str,
    llm_model: str,
    response_model: type[ModelT],
    base_url: str | None,
    timeout_seconds: float,
) -> Callable[[str, str], Awaitable[ModelT]]:
    """Return ``invoke(system, user)`` for the provider, validating the result."""

    if llm_provider.lower() == LOCAL_PROVIDER:

        async def invoke_edge(system_prompt: str, user_prompt: str) -> ModelT:
            try:
                raw = await call_ollama_chat(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    llm_model=llm_model,
                    base_url=base_url,
                    json_mode=True,
                    timeout=timeout_seconds,
                )
            except LocalLLMError as exc:
                raise LocalLLMError(
                    f"Edge model {llm_model} failed: {exc}", status_code=exc.status_code
                ) from exc
            return response_model.model_validate_json(raw)

        return invoke_edge

    @llm.call(provider=llm_provider, model=llm_model, response_model=response_model)
    async def invoke_remote(prompt: str) -> str:
        return prompt

    async def invoke(system_prompt: str, user_prompt: str) -> ModelT:
        return await invoke_remote(combine_prompts(system_prompt, user_prompt))

    return invoke


async def call_llm_with_retries(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    response_model: type[ModelT],
    max_attempts: int = 3,
    feedback_builder: Callable[[ValidationError], ValidationFeedback] = inject_validation_feedback,
    base_url: str | None = None,
    timeout_seconds: float = LLM_TIMEOUT_SECONDS,
) -> ModelT:
    """Return a ``response_model`` instance, repairing schema errors in place.

    Only ``ValidationError`` is retried. Each retry resends the original
    prompt plus the feedback for the latest failure; the last
    ``ValidationError`` propagates once ``max_attempts`` is used up.
    Timeouts and provider errors propagate on the first occurrence.
    """

    system_prompt = system_prompt.strip()
    user_prompt = user_prompt.strip()
    label = response_model.__name__
    invoke = _structured_invoker(
        llm_provider=llm_provider,
        llm_model=llm_model,
        response_model=response_model,
        base_url=base_url,
        timeout_seconds=timeout_seconds,
    )

    feedback: ValidationFeedback | None = None
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ValidationError),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
    ):
        with attempt:
            number = attempt.retry_state.attempt_number
            prompt = user_prompt
            if feedback is not None:
                log_llm(f"{label}: schema repair attempt {number}/{max_attempts}")
                prompt = f"{user_prompt}\n\n{feedback.llm_text}"
            _dump_prompt(label, system_prompt, prompt)

            try:
                return await asyncio.wait_for(invoke(system_prompt, prompt), timeout=timeout_seconds)
            except ValidationError as exc:
                feedback = feedback_builder(exc)
                log_error(f"{label} failed schema validation ({number}/{max_attempts})")
                for issue in feedback.issues:
                    print(f"    - {issue}")
                raise
            except asyncio.TimeoutError:
                log_error(f"{label} call timed out after {timeout_seconds:g}s")
                raise

    raise RuntimeError(f"{label} call finished without a result")


async def call_llm_text(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    base_url: str | None = None,
    timeout_seconds: float = LLM_TIMEOUT_SECONDS,
) -> str:
    """Return the model's free-text reply."""

    system_prompt = system_prompt.strip()
    user_prompt = user_prompt.strip()
    _dump_prompt("text", system_prompt, user_prompt)

    if llm_provider.lower() == LOCAL_PROVIDER:
        pending = call_ollama_chat(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            llm_model=llm_model,
            base_url=base_url,
            timeout=timeout_seconds,
        )
    else:

        @llm.call(provider=llm_provider, model=llm_model)
        async def narrate(prompt: str) -> str:
            return prompt

        pending = narrate(combine_prompts(system_prompt, user_prompt))

    try:
        response = await asyncio.wait_for(pending, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        log_error(f"Text call timed out after {timeout_seconds:g}s")
        raise
    return response if isinstance(response, str) else response.content
