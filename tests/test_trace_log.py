"""Tests for the append-only reasoning trace logs."""

import pytest

from dreamweaver.schemas import ReasoningTrace, ResilienceMeta, CorrectionAction
from dreamweaver.trace_log import InMemoryTraceLog, JsonlTraceLog


def _trace(action="REPLY", **kwargs):
    return ReasoningTrace(thought="thinking", action=action, confidence=0.9, **kwargs)


@pytest.mark.asyncio
async def test_in_memory_log_appends_in_order():
    log = InMemoryTraceLog()

    await log.append("s1", [_trace("START_STORY")])
    await log.append("s1", [_trace("REPLY")])

    assert [t.action for t in await log.read("s1")] == ["START_STORY", "REPLY"]
    assert await log.read("s2") == []


@pytest.mark.asyncio
async def test_jsonl_log_round_trips_traces(tmp_path):
    log = JsonlTraceLog(tmp_path / "traces")
    trace = _trace(
        "SAFE_MODE",
        resilience_meta=ResilienceMeta(
            failure_encountered=True,
            correction_attempted=CorrectionAction.DEGRADE_SERVICE,
            recovery_cost_usd=0.0,
        ),
    )

    await log.append("session/1", [trace])
    await log.append("session/1", [_trace()])
    await log.append("session/1", [])

    restored = await log.read("session/1")
    assert [t.id for t in restored][0] == trace.id
    assert restored[0].resilience_meta.correction_attempted is CorrectionAction.DEGRADE_SERVICE
    assert len(restored) == 2
    assert (tmp_path / "traces" / "session_1.jsonl").exists()


@pytest.mark.asyncio
async def test_jsonl_read_missing_session(tmp_path):
    assert await JsonlTraceLog(tmp_path).read("nothing") == []


def test_traces_are_immutable():
    trace = _trace()

    with pytest.raises(Exception):
        trace.action = "OTHER"
