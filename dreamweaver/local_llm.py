"""Edge-tier model calls.

The edge tier is a model served by a local Ollama daemon: no per-token cost,
no network dependency beyond localhost, and the last resort the resilience
layer falls back to. The HTTP call is blocking (urllib), so it runs on a
worker thread.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List
from urllib import error, request

DEFAULT_EDGE_URL = "http://127.0.0.1:11434"
EDGE_CHAT_PATH = "/api/chat"


class LocalLLMError(RuntimeError):
    """The edge model could not produce a reply.

    ``status_code`` carries the HTTP status when the daemon answered with one,
    so failure classification can treat it like any other provider error.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def build_chat_payload(
    system_prompt: str, user_prompt: str, llm_model: str, *, json_mode: bool = False
) -> Dict[str, Any]:
    turns: List[Dict[str, str]] = [{"role": "user", "content": user_prompt}]
    if system_prompt:
        turns.insert(0, {"role": "system", "content": system_prompt})

    payload: Dict[str, Any] = {"model": llm_model, "messages": turns, "stream": False}
    if json_mode:
        payload["format"] = "json"
    return payload


def _post_chat(payload: Dict[str, Any], base_url: str, timeout: float) -> str:
    """POST one non-streaming chat request and return the assistant text."""

    endpoint = base_url + EDGE_CHAT_PATH
    http_request = request.Request(
        endpoint,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with request.urlopen(http_request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace") if exc.fp else exc.reason
        raise LocalLLMError(
            f"Edge model {payload.get('model')} answered {exc.code}: {detail}",
            status_code=exc.code,
        ) from exc
    except error.URLError as exc:
        raise LocalLLMError(f"Edge model unreachable at {endpoint}: {exc.reason}") from exc

    try:
        content = (json.loads(body).get("message") or {}).get("content")
    except (json.JSONDecodeError, AttributeError) as exc:
        raise LocalLLMError("Edge model returned a malformed chat envelope.") from exc

    if not content:
        raise LocalLLMError("Edge model returned an empty reply.")
    return content


async def call_ollama_chat(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    base_url: str | None = None,
    json_mode: bool = False,
    timeout: float = 120.0,
) -> str:
    """Ask the edge model for one reply.

    ``json_mode`` constrains the output to JSON, which structured calls need.
    """

    user_prompt = user_prompt.strip()
    if not user_prompt:
        raise LocalLLMError("Refusing to send an empty prompt to the edge model.")

    payload = build_chat_payload(system_prompt.strip(), user_prompt, llm_model, json_mode=json_mode)
    endpoint_base = (base_url or DEFAULT_EDGE_URL).rstrip("/")
    return await asyncio.to_thread(_post_chat, payload, endpoint_base, timeout)
