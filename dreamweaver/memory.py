"""
Agent memory store interface and the in-process default.

Two kinds of memory live side by side:
- EPISODIC: raw turn-level records (utterances, replies), high volume
- SEMANTIC: consolidated facts produced by the Ralph Loop, tagged with
  an ``anchor`` in metadata pointing back at the episodic line they came from

Retrieval with the wildcard query ``"*"`` returns records in chronological
order; this is what the summarizer relies on to build a line-indexed
transcript.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from dreamweaver.schemas import MemoryKind, MemoryRecord, MemoryScope


WILDCARD_QUERY = "*"


class AgentMemoryStore(ABC):
    """
    Abstract base class for agent memory backends.

    Implementations may be a vector database, a relational table or a plain
    list; the conductor and the summarizer only depend on these two calls.
    """

    @abstractmethod
    async def store(
        self,
        content: str,
        kind: MemoryKind,
        context: MemoryScope,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        confidence: float = 1.0,
    ) -> MemoryRecord:
        """
        Persist one memory.

        Args:
            content: Natural language content
            kind: EPISODIC or SEMANTIC
            context: Owning user (and optionally session)
            metadata: Free-form payload (trace ids, provenance anchors)
            confidence: How certain the writer is of the content

        Returns:
            The stored MemoryRecord
        """
        pass

    @abstractmethod
    async def retrieve(
        self,
        query: str,
        context: MemoryScope,
        kind: Optional[MemoryKind] = None,
        limit: int = 10,
    ) -> List[MemoryRecord]:
        """
        Retrieve memories for a scope.

        Args:
            query: Free text, or ``"*"`` for every record in chronological order
            context: Scope filter. When ``session_id`` is None all of the user's
                sessions match.
            kind: Optional kind filter
            limit: Maximum number of records

        Returns:
            Matching records. Wildcard queries return the newest ``limit``
            records in chronological order; text queries return the best matches first.
        """
        pass


class InMemoryAgentMemory(AgentMemoryStore):
    """List-backed memory store with keyword + recency scoring."""

    def __init__(self) -> None:
        self._records: List[MemoryRecord] = []
        self._lock = asyncio.Lock()

    async def store(
        self,
        content: str,
        kind: MemoryKind,
        context: MemoryScope,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        confidence: float = 1.0,
    ) -> MemoryRecord:
        record = MemoryRecord(
            kind=kind,
            content=content,
            confidence=confidence,
            user_id=context.user_id,
            session_id=context.session_id,
            metadata=dict(metadata or {}),
        )
        async with self._lock:
            self._records.append(record)
        return record

    def _in_scope(
        self, record: MemoryRecord, context: MemoryScope, kind: Optional[MemoryKind]
    ) -> bool:
        if record.user_id != context.user_id:
            return False
        if context.session_id is not None and record.session_id != context.session_id:
            return False
        return kind is None or record.kind == kind

    async def retrieve(
        self,
        query: str,
        context: MemoryScope,
        kind: Optional[MemoryKind] = None,
        limit: int = 10,
    ) -> List[MemoryRecord]:
        async with self._lock:
            candidates = [r for r in self._records if self._in_scope(r, context, kind)]

        if limit <= 0 or not candidates:
            return []

        query = (query or "").lower().strip()
        if query in ("", WILDCARD_QUERY):
            return candidates[-limit:]

        terms = [term for term in query.replace(",", " ").split() if term]
        newest_index = len(candidates) - 1
        scores: List[tuple[float, int, MemoryRecord]] = []

        for index, record in enumerate(candidates):
            text = record.content.lower()
            score = sum(2.0 for term in terms if term in text)
            if score <= 0.0:
                continue
            # Favor fresher memories; confidence breaks near-ties.
            score += 1.0 / (1.0 + (newest_index - index))
            score += record.confidence * 0.1
            scores.append((score, index, record))

        if not scores:
            # No keyword hit: fall back to the most recent records.
            return list(reversed(candidates[-limit:]))

        scores.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [record for _, _, record in scores[:limit]]

    async def all_records(self) -> List[MemoryRecord]:
        async with self._lock:
            return list(self._records)
