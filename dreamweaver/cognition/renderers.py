"""Prompt rendering utilities."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from .prompts import PromptTemplate


@dataclass
class RenderedPrompt:
    system: str
    user: str


def _stringify(value: Any) -> str:
    if value is None or value == "":
        return "None"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) or "None"
    if isinstance(value, dict):
        return json.dumps(value, default=str, sort_keys=True)
    return str(value)


def fill_placeholders(text: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders. Double braces avoid clashing with JSON examples."""
    for key, value in variables.items():
        text = text.replace("{{" + key + "}}", _stringify(value))
    return text


def render_prompt(template: PromptTemplate, variables: Mapping[str, Any]) -> RenderedPrompt:
    """Render both halves of ``template`` with the supplied variables.

    Empty values render as ``None`` so the model sees an explicit gap
    rather than a blank field.
    """

    return RenderedPrompt(
        system=fill_placeholders(template.system, variables).strip(),
        user=fill_placeholders(template.user, variables).strip(),
    )
