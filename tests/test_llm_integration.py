"""Integration test that performs a real LLM call when configured.

This is intentionally minimal and skipped by default unless LLM env vars are set.
"""

import os
import pytest

from dreamweaver.llm_utils import call_llm_with_retries
from dreamweaver.schemas import AgentThought


REQUIRED_ENVS = ("LLM_PROVIDER", "LLM_MODEL")


pytestmark = pytest.mark.skipif(
    any(not os.getenv(v) for v in REQUIRED_ENVS),
    reason="LLM integration test skipped (missing LLM_PROVIDER/LLM_MODEL)",
)


@pytest.mark.asyncio
@pytest.mark.llm
async def test_real_llm_returns_agent_thought():
    # Keep prompts small; ask the model to output exactly this JSON.
    system = (
        "You output ONLY valid JSON for an AgentThought. Do not add commentary. "
        "Echo the provided JSON exactly."
    )
    user = (
        '{"goals_considered": ["RELAXATION"], "conflicts_identified": null, '
        '"trade_off_made": null, "thought": "The child is calm.", "action": "REPLY", '
        '"confidence": 0.9, "parameters": {"reply": "Goodnight, moon."}}'
    )

    thought = await call_llm_with_retries(
        system_prompt=system,
        user_prompt=user,
        llm_provider=os.getenv("LLM_PROVIDER"),
        llm_model=os.getenv("LLM_MODEL"),
        response_model=AgentThought,
    )

    assert isinstance(thought, AgentThought)
    assert thought.action == "REPLY"
    assert thought.reply
