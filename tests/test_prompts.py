"""Tests for prompt templates and placeholder rendering."""

import pytest

from dreamweaver.cognition.prompts import (
    DEFAULT_PROMPTS,
    START_STORY_TRIGGER,
    PromptLibrary,
    PromptTemplate,
)
from dreamweaver.cognition.renderers import fill_placeholders, render_prompt


def test_default_library_has_every_purpose():
    for name in (
        "conductor_turn",
        "suggestions",
        "memory_summarizer",
        "verification_validator",
        "memory_curator",
    ):
        assert DEFAULT_PROMPTS.get(name).system


def test_missing_template_raises_key_error():
    with pytest.raises(KeyError):
        PromptLibrary().get("nope")


def test_render_conductor_turn_fills_observation():
    rendered = render_prompt(
        DEFAULT_PROMPTS.get("conductor_turn"),
        {
            "user_message": "tell me about owls",
            "child_name": "Mia",
            "child_age": 5,
            "current_mood": "calm",
            "phase": "STORYTELLING",
            "active_goal": "Tell a balanced story",
            "intent": "DIRECT",
            "env_context": None,
            "memory_context": ["likes owls", "has a cat"],
            "history": "",
        },
    )

    assert rendered.system.startswith("You are the Bedtime Conductor")
    assert '- User Input: "tell me about owls"' in rendered.user
    assert "- Child: Mia (Age: 5)" in rendered.user
    assert "- Environment: None" in rendered.user
    assert "- Relevant Memories: likes owls, has a cat" in rendered.user
    assert "- Recent History: None" in rendered.user
    assert "{{" not in rendered.user


def test_json_braces_in_templates_survive_rendering():
    template = PromptTemplate(name="t", system='Return {"a": {{value}}}', user="{{missing}}")

    rendered = render_prompt(template, {"value": 3})

    assert rendered.system == 'Return {"a": 3}'
    assert rendered.user == "{{missing}}"


def test_start_story_trigger():
    assert fill_placeholders(START_STORY_TRIGGER, {"theme": "space"}) == 'Start story about "space"'
