"""Rule-based cognition helpers for DreamWeaver.

The agenda planner and intent classifier are pure functions of their
input; the prompt library and renderer turn session context into model
prompts.
"""

from .intent import IntentClassifier, INTENT_PATTERNS
from .planner import SessionPlanner, AGENDAS, goal_for_elapsed
from .prompts import (
    PromptLibrary,
    PromptTemplate,
    DEFAULT_PROMPTS,
    SAFETY_FALLBACK,
    START_STORY_TRIGGER,
    SLEEP_PACING_OVERRIDE,
)
from .renderers import render_prompt, fill_placeholders, RenderedPrompt

__all__ = [
    "IntentClassifier",
    "INTENT_PATTERNS",
    "SessionPlanner",
    "AGENDAS",
    "goal_for_elapsed",
    "PromptLibrary",
    "PromptTemplate",
    "DEFAULT_PROMPTS",
    "SAFETY_FALLBACK",
    "START_STORY_TRIGGER",
    "SLEEP_PACING_OVERRIDE",
    "render_prompt",
    "fill_placeholders",
    "RenderedPrompt",
]
