"""
Append-only audit log of reasoning traces.

Traces are immutable once created; the log only ever appends them. The
JSONL backend writes one file per session, mirroring how run artifacts
are persisted to disk elsewhere, with blocking file I/O pushed onto a
worker thread.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path
from typing import Dict, List

from dreamweaver.schemas import ReasoningTrace


class TraceLog(ABC):
    @abstractmethod
    async def append(self, session_id: str, traces: List[ReasoningTrace]) -> None:
        """Append traces for ``session_id`` in order."""
        pass

    @abstractmethod
    async def read(self, session_id: str) -> List[ReasoningTrace]:
        """Return every trace recorded for ``session_id``, oldest first."""
        pass


class InMemoryTraceLog(TraceLog):
    def __init__(self) -> None:
        self._traces: Dict[str, List[ReasoningTrace]] = defaultdict(list)

    async def append(self, session_id: str, traces: List[ReasoningTrace]) -> None:
        self._traces[session_id].extend(traces)

    async def read(self, session_id: str) -> List[ReasoningTrace]:
        return list(self._traces.get(session_id, []))


class JsonlTraceLog(TraceLog):
    """Stores ``<directory>/<session_id>.jsonl``, one trace per line."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, session_id: str) -> Path:
        safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in session_id)
        return self.directory / f"{safe_name}.jsonl"

    def _append_sync(self, path: Path, lines: List[str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")

    def _read_sync(self, path: Path) -> List[ReasoningTrace]:
        if not path.exists():
            return []
        traces: List[ReasoningTrace] = []
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if line:
                    traces.append(ReasoningTrace.model_validate(json.loads(line)))
        return traces

    async def append(self, session_id: str, traces: List[ReasoningTrace]) -> None:
        if not traces:
            return
        lines = [trace.model_dump_json() for trace in traces]
        await asyncio.to_thread(self._append_sync, self._path(session_id), lines)

    async def read(self, session_id: str) -> List[ReasoningTrace]:
        return await asyncio.to_thread(self._read_sync, self._path(session_id))
