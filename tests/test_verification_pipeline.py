"""Tests for the RULE -> MODEL -> HUMAN verification pipeline."""

import pytest

from dreamweaver.schemas import ContentType, VerifiableContent, VerificationStage
from dreamweaver.verification import (
    InMemoryHumanReviewQueue,
    ModelVerdict,
    VerificationPipeline,
)


class StubAIService:
    """Returns a canned verdict (or raises) and records every structured call."""

    def __init__(self, verdict=None, error=None):
        self.verdict = verdict
        self.error = error
        self.calls: list[dict] = []

    async def generate_structured(self, response_model, *, system_prompt, user_prompt, model_tier):
        self.calls.append(
            {"model": response_model, "system": system_prompt, "user": user_prompt, "tier": model_tier}
        )
        if self.error is not None:
            raise self.error
        return self.verdict


def _moment(description):
    return VerifiableContent(type=ContentType.GOLDEN_MOMENT, content={"description": description})


@pytest.mark.asyncio
async def test_short_description_fails_rule_stage_without_model_call():
    ai = StubAIService(ModelVerdict(approved=True, reason="ok", confidence=1.0))
    queue = InMemoryHumanReviewQueue()
    pipeline = VerificationPipeline(ai, queue)

    result = await pipeline.verify(_moment("123456789"))

    assert result.approved is False
    assert result.stage is VerificationStage.RULE
    assert result.reason == "Failed static safety rules"
    assert ai.calls == []
    assert queue.items == []


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "a plain string", {"description": 42}, {}])
async def test_malformed_moment_fails_rule_stage(content):
    ai = StubAIService()
    pipeline = VerificationPipeline(ai, InMemoryHumanReviewQueue())

    result = await pipeline.verify(VerifiableContent(type=ContentType.GOLDEN_MOMENT, content=content))

    assert result.stage is VerificationStage.RULE
    assert ai.calls == []


@pytest.mark.asyncio
async def test_confident_approval_passes_model_stage():
    ai = StubAIService(ModelVerdict(approved=True, reason="lovely", confidence=0.95))
    queue = InMemoryHumanReviewQueue()

    result = await VerificationPipeline(ai, queue).verify(_moment("Mia asked why owls stay up late"))

    assert result.approved is True
    assert result.stage is VerificationStage.MODEL
    assert result.reason == "All checks passed"
    assert result.confidence == 0.95
    assert queue.items == []
    assert len(ai.calls) == 1
    assert ai.calls[0]["model"] is ModelVerdict
    assert "type=GOLDEN_MOMENT" in ai.calls[0]["system"]
    assert "owls" in ai.calls[0]["user"]


@pytest.mark.asyncio
async def test_low_confidence_approval_escalates_to_human():
    ai = StubAIService(ModelVerdict(approved=True, reason="probably fine", confidence=0.6))
    queue = InMemoryHumanReviewQueue()
    item = _moment("Mia asked why owls stay up late")

    result = await VerificationPipeline(ai, queue).verify(item)

    assert result.approved is False
    assert result.stage is VerificationStage.HUMAN
    assert result.reason == "Flagged for human review"
    assert len(queue.items) == 1
    assert queue.items[0].item == item
    assert queue.items[0].confidence == 0.6
    assert queue.items[0].reason == "Low confidence model validation"


@pytest.mark.asyncio
async def test_model_rejection_reports_model_reason():
    ai = StubAIService(ModelVerdict(approved=False, reason="too scary", confidence=0.9))
    queue = InMemoryHumanReviewQueue()

    result = await VerificationPipeline(ai, queue).verify(_moment("A monster under the bed"))

    assert result.approved is False
    assert result.stage is VerificationStage.MODEL
    assert result.reason == "too scary"
    assert queue.items == []


@pytest.mark.asyncio
async def test_validator_error_is_a_rejection(capsys):
    ai = StubAIService(error=RuntimeError("provider down"))

    result = await VerificationPipeline(ai, InMemoryHumanReviewQueue()).verify(
        _moment("Mia hugged her dad goodnight")
    )

    assert result.approved is False
    assert result.stage is VerificationStage.MODEL
    assert result.reason == "Validator error"
    assert result.confidence == 0
    assert "[VerificationPipeline] Model check failed" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_safety_actions_skip_moment_rules():
    ai = StubAIService(ModelVerdict(approved=True, reason="ok", confidence=0.9))

    result = await VerificationPipeline(ai, InMemoryHumanReviewQueue()).verify(
        VerifiableContent(type=ContentType.SAFETY_ACTION, content="lower volume")
    )

    assert result.approved is True
    assert len(ai.calls) == 1


@pytest.mark.asyncio
async def test_drain_empties_the_queue():
    ai = StubAIService(ModelVerdict(approved=True, reason="meh", confidence=0.5))
    queue = InMemoryHumanReviewQueue()
    await VerificationPipeline(ai, queue).verify(_moment("Mia laughed at the moon"))

    drained = await queue.drain()

    assert len(drained) == 1
    assert queue.items == []
