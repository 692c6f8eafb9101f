"""Tests for the in-memory agent memory store."""

import pytest

from dreamweaver.memory import InMemoryAgentMemory
from dreamweaver.schemas import MemoryKind, MemoryScope


@pytest.mark.asyncio
async def test_wildcard_returns_chronological_scope():
    memory = InMemoryAgentMemory()
    scope = MemoryScope(user_id="u1", session_id="s1")
    await memory.store("first", MemoryKind.EPISODIC, scope)
    await memory.store("other session", MemoryKind.EPISODIC, MemoryScope(user_id="u1", session_id="s2"))
    await memory.store("other user", MemoryKind.EPISODIC, MemoryScope(user_id="u2", session_id="s1"))
    await memory.store("a fact", MemoryKind.SEMANTIC, scope)
    await memory.store("second", MemoryKind.EPISODIC, scope)

    records = await memory.retrieve("*", scope, MemoryKind.EPISODIC, 50)

    assert [r.content for r in records] == ["first", "second"]
    assert all(r.session_id == "s1" for r in records)


@pytest.mark.asyncio
async def test_wildcard_limit_keeps_newest_window_in_order():
    memory = InMemoryAgentMemory()
    scope = MemoryScope(user_id="u1", session_id="s1")
    for index in range(5):
        await memory.store(f"line {index}", MemoryKind.EPISODIC, scope)

    records = await memory.retrieve("*", scope, MemoryKind.EPISODIC, 3)

    assert [r.content for r in records] == ["line 2", "line 3", "line 4"]


@pytest.mark.asyncio
async def test_keyword_retrieval_across_user_sessions():
    memory = InMemoryAgentMemory()
    await memory.store("Mia loves owls", MemoryKind.SEMANTIC, MemoryScope(user_id="u1", session_id="s1"))
    await memory.store("Mia has a cat", MemoryKind.SEMANTIC, MemoryScope(user_id="u1", session_id="s2"))
    await memory.store("Owls hoot at night", MemoryKind.SEMANTIC, MemoryScope(user_id="u1", session_id="s3"))

    records = await memory.retrieve("owls", MemoryScope(user_id="u1"), MemoryKind.SEMANTIC, 2)

    assert len(records) == 2
    assert all("owls" in r.content.lower() for r in records)
    # Newer match ranks first.
    assert records[0].content == "Owls hoot at night"


@pytest.mark.asyncio
async def test_no_keyword_hit_falls_back_to_recent():
    memory = InMemoryAgentMemory()
    scope = MemoryScope(user_id="u1")
    await memory.store("old", MemoryKind.SEMANTIC, scope)
    await memory.store("new", MemoryKind.SEMANTIC, scope)

    records = await memory.retrieve("dinosaurs", scope, limit=1)

    assert [r.content for r in records] == ["new"]


@pytest.mark.asyncio
async def test_store_keeps_metadata_and_confidence():
    memory = InMemoryAgentMemory()

    record = await memory.store(
        "fact", MemoryKind.SEMANTIC, MemoryScope(user_id="u1", session_id="s1"),
        {"anchor": {"transcript_offset": 2}}, confidence=0.7,
    )

    assert record.metadata == {"anchor": {"transcript_offset": 2}}
    assert record.confidence == 0.7
    assert (await memory.all_records())[0].id == record.id
