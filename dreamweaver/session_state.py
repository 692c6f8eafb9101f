"""
Session state store with time-travel history.

Every write pushes a history-free snapshot of the previous state onto
``history`` before the new value lands; ``rollback`` pops snapshots back
off. History is bounded so long-lived sessions cannot grow without limit.

Callers must serialize turns per ``session_id``; the store does not lock
across a read-modify-write cycle.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from dreamweaver.logging_utils import log_deterministic
from dreamweaver.schemas import SessionSnapshot, SessionState


DEFAULT_HISTORY_LIMIT = 10


class SessionNotFoundError(KeyError):
    """Raised when mutating a session that was never created."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionStateStore(ABC):
    """Abstract base class for session state backends."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[SessionState]:
        """Return the current state, or None when the session does not exist."""
        pass

    @abstractmethod
    async def set(self, state: SessionState) -> SessionState:
        """
        Write ``state`` as the current value.

        The previous value (if any) is appended to history first. The
        ``history`` field of the incoming object is ignored; the store owns it.
        """
        pass

    @abstractmethod
    async def patch(self, session_id: str, updates: Dict[str, Any]) -> SessionState:
        """
        Apply a partial update to top-level fields.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        pass

    @abstractmethod
    async def rollback(self, session_id: str, steps: int = 1) -> Optional[SessionState]:
        """
        Restore the state from ``steps`` writes ago.

        Returns:
            The restored state, or None when there is no history to restore
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Remove the session entirely."""
        pass


class InMemorySessionState(SessionStateStore):
    """Dict-backed store. State objects are copied on the way in and out."""

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self.history_limit = history_limit
        self._sessions: Dict[str, SessionState] = {}

    async def get(self, session_id: str) -> Optional[SessionState]:
        state = self._sessions.get(session_id)
        return state.model_copy(deep=True) if state is not None else None

    async def set(self, state: SessionState) -> SessionState:
        previous = self._sessions.get(state.session_id)
        history: List[SessionSnapshot] = []
        if previous is not None:
            history = list(previous.history)
            history.append(previous.snapshot())
            if len(history) > self.history_limit:
                history = history[-self.history_limit:]

        stored = state.model_copy(deep=True, update={"history": history})
        self._sessions[state.session_id] = stored
        return stored.model_copy(deep=True)

    async def patch(self, session_id: str, updates: Dict[str, Any]) -> SessionState:
        current = self._sessions.get(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)
        if "history" in updates:
            raise ValueError("history cannot be patched directly")

        merged = current.model_dump()
        merged.update(updates)
        return await self.set(SessionState.model_validate(merged))

    async def rollback(self, session_id: str, steps: int = 1) -> Optional[SessionState]:
        current = self._sessions.get(session_id)
        if current is None or not current.history or steps < 1:
            return None

        steps = min(steps, len(current.history))
        history = list(current.history)
        target = history[-steps]
        remaining = history[:-steps]

        restored = SessionState.from_snapshot(target, remaining)
        self._sessions[session_id] = restored
        log_deterministic(
            f"[SessionState] Rolled back {session_id} by {steps} step(s) to phase {restored.phase.value}"
        )
        return restored.model_copy(deep=True)

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
