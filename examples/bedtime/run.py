"""One bedtime session end to end: start, a few turns, a sleep cue, consolidation.

Run deterministically (scripted model, no API key needed):

    python -m examples.bedtime.run

Use the configured provider/model (reads .env):

    python -m examples.bedtime.run --llm

Inject failures into the scripted model to watch the recovery paths:

    python -m examples.bedtime.run --chaos
"""

from __future__ import annotations

import argparse
import asyncio
from typing import List

from dreamweaver import (
    AgentContext,
    AgentThought,
    AIServiceError,
    Config,
    ConductorSettings,
    DomainEvent,
    MemoryKind,
    MemoryScope,
    ModelTier,
    SessionConfig,
    SLEEP_CUE_DETECTED,
    build_default_runtime,
)
from dreamweaver.moments import MomentCandidate
from dreamweaver.summarization import FactExtraction
from dreamweaver.verification import ModelVerdict


CHILD_LINES = [
    "Can we have a dragon who is scared of the dark?",
    "Why is he scared?",
    "yes, give him a lantern",
    "I'm sleepy",
]


class ScriptedAIService:
    """Deterministic stand-in for the model: replies follow the child's lines."""

    def __init__(self, chaos: bool = False):
        self.chaos = chaos
        self.turn = 0

    async def generate_thought(
        self, *, system_prompt, user_prompt, model_tier=ModelTier.PRO, timeout_seconds=None
    ):
        self.turn += 1
        if self.chaos and self.turn == 2:
            raise asyncio.TimeoutError()
        if self.chaos and self.turn == 4:
            raise AIServiceError("upstream unavailable", status_code=503)

        sleepy = "SYSTEM_ALERT" in system_prompt or "sleepy" in user_prompt
        if sleepy:
            return AgentThought(
                goals_considered=["RELAXATION"],
                thought="The child is drifting off; close the story softly.",
                action="FADE_OUT",
                confidence=0.95,
                parameters={"reply": "And Ember the dragon curled up by his lantern, warm and safe."},
            )
        return AgentThought(
            goals_considered=["ENGAGEMENT", "RELAXATION"],
            conflicts_identified="Excitement vs. bedtime calm",
            trade_off_made="Keep the adventure gentle",
            thought="Follow the child's idea with a slow pace.",
            action="START_STORY" if self.turn == 1 else "REPLY",
            confidence=0.85,
            parameters={"reply": "Once there was a small dragon named Ember who lived in a cave."},
        )

    async def generate_text(self, *, system_prompt, user_prompt, model_tier=ModelTier.PRO):
        return "Once upon a time."

    async def generate_structured(self, response_model, *, system_prompt, user_prompt, model_tier=ModelTier.FLASH):
        if response_model is FactExtraction:
            return FactExtraction.model_validate(
                {"facts": [{"fact": "Likes dragons who need comfort", "confidence": 0.9, "lineReference": 1}]}
            )
        if response_model is MomentCandidate:
            return MomentCandidate(found=True, description="Gave the scared dragon a lantern", confidence=0.9)
        if response_model is ModelVerdict:
            return ModelVerdict(approved=True, reason="Warm and age appropriate", confidence=0.92)
        return response_model()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a DreamWeaver bedtime session")
    parser.add_argument("--llm", action="store_true", help="Use the configured LLM provider")
    parser.add_argument("--chaos", action="store_true", help="Inject failures into the scripted model")
    parser.add_argument("--theme", default="a dragon who is scared of the dark")
    parser.add_argument("--trace-dir", default=None, help="Write reasoning traces as JSONL here")
    return parser.parse_args()


async def run_session(args: argparse.Namespace, use_llm: bool) -> List[str]:
    if use_llm:
        Config.validate()
        print(Config.display())
        runtime = build_default_runtime(trace_dir=args.trace_dir)
    else:
        runtime = build_default_runtime(
            ConductorSettings(),
            ai_service=ScriptedAIService(chaos=args.chaos),
            trace_dir=args.trace_dir,
        )

    context = AgentContext(
        user_id="demo-family",
        session_id="demo-session",
        child_name="Mia",
        child_age=5,
        current_mood="calm",
        recent_interests=["dragons", "lanterns"],
    )

    suggestions = await runtime.conductor.generate_suggestions(context)
    for suggestion in suggestions:
        print(f"Suggestion: {suggestion.title} ({suggestion.reasoning})")

    started = await runtime.conductor.conduct_story_session(SessionConfig(theme=args.theme), context)
    transcript = [f"Conductor: {started.reply}"]

    for line in CHILD_LINES:
        turn = await runtime.conductor.process_turn(line, context)
        transcript.append(f"Child: {line}")
        transcript.append(f"Conductor: {turn.reply} [{turn.trace[0].action}, {turn.phase.value}]")

    await runtime.event_bus.publish(
        SLEEP_CUE_DETECTED,
        DomainEvent(
            request_id=context.session_id,
            type=SLEEP_CUE_DETECTED,
            payload={"confidence": 0.93, "context": {"session_id": context.session_id, "user_id": context.user_id}},
        ),
    )
    await runtime.shutdown()

    moment = await runtime.curator.analyze_session(context.session_id, context.user_id)
    if moment is not None:
        transcript.append(f"Golden moment: {moment.description}")

    facts = await runtime.memory.retrieve("*", MemoryScope(user_id=context.user_id), MemoryKind.SEMANTIC)
    transcript.extend(f"Learned: {fact.content}" for fact in facts)

    state = await runtime.session_state.get(context.session_id)
    transcript.append(f"Final phase: {state.phase.value}")
    return transcript


async def main(args: argparse.Namespace) -> None:
    try:
        transcript = await run_session(args, use_llm=args.llm)
    except ValueError as exc:
        print(f"[warning] {exc}. Falling back to the scripted model.")
        transcript = await run_session(args, use_llm=False)

    print()
    for line in transcript:
        print(line)


if __name__ == "__main__":
    asyncio.run(main(parse_args()))
