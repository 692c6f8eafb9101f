"""
Event-driven trigger for the Ralph Loop.

Listens for session boundary events and hands the session to the
summarizer. By default summarization runs as a background task so the
publishing turn is not held up; ``drain()`` awaits whatever is still
running (tests and shutdown use it).
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Set

from pydantic import ValidationError

from dreamweaver.events import SLEEP_CUE_DETECTED, STORY_BEAT_COMPLETED, EventBus
from dreamweaver.logging_utils import log_error, log_info, log_warning
from dreamweaver.schemas import DomainEvent, StoryBeatPayload
from dreamweaver.session_state import SessionStateStore
from dreamweaver.summarization import MemorySummarizationService


UNKNOWN_SESSION = "unknown"


class SessionConsolidator:
    def __init__(
        self,
        event_bus: EventBus,
        summarizer: MemorySummarizationService,
        session_state: SessionStateStore,
        *,
        background: bool = True,
    ):
        self.event_bus = event_bus
        self.summarizer = summarizer
        self.session_state = session_state
        self.background = background
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribers: List[Callable[[], None]] = []

    def subscribe(self) -> None:
        self._unsubscribers.append(
            self.event_bus.subscribe(SLEEP_CUE_DETECTED, self.handle_sleep_detected)
        )
        self._unsubscribers.append(
            self.event_bus.subscribe(STORY_BEAT_COMPLETED, self.handle_story_beat)
        )
        log_info("[SessionConsolidator] Subscribed to lifecycle events for Ralph Loop")

    def unsubscribe(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    async def handle_sleep_detected(self, event: DomainEvent) -> None:
        context = event.payload.get("context") or {}
        session_id = context.get("session_id") or event.request_id
        if not session_id or session_id == UNKNOWN_SESSION:
            log_warning(
                f"[SessionConsolidator] Skipping summarization: no session id in sleep event {event.id}"
            )
            return

        user_id = context.get("user_id") or await self._lookup_user(session_id)
        if not user_id:
            log_warning(
                f"[SessionConsolidator] Skipping summarization: could not resolve user for {session_id}"
            )
            return

        log_info(f"[SessionConsolidator] Sleep detected. Triggering summarization for {session_id}")
        await self._trigger(session_id, user_id)

    async def handle_story_beat(self, event: DomainEvent) -> None:
        try:
            payload = StoryBeatPayload.model_validate(event.payload)
        except ValidationError as exc:
            log_warning(f"[SessionConsolidator] Ignoring malformed story beat event {event.id}: {exc}")
            return

        if payload.beat_index < payload.total_beats - 1:
            return

        session_id = event.request_id
        if not session_id or session_id == UNKNOWN_SESSION:
            return

        log_info(f"[SessionConsolidator] Story completed. Triggering summarization for {session_id}")
        user_id = await self._lookup_user(session_id)
        if not user_id:
            log_warning(
                f"[SessionConsolidator] Story completed but no user found in session state for {session_id}"
            )
            return

        await self._trigger(session_id, user_id)

    async def _lookup_user(self, session_id: str) -> Optional[str]:
        try:
            state = await self.session_state.get(session_id)
        except Exception as exc:
            log_error(f"[SessionConsolidator] Session lookup failed for {session_id}: {exc}")
            return None
        return state.user_id if state is not None else None

    async def _trigger(self, session_id: str, user_id: str) -> None:
        if not self.background:
            await self._summarize(session_id, user_id)
            return

        task = asyncio.create_task(self._summarize(session_id, user_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _summarize(self, session_id: str, user_id: str) -> None:
        try:
            await self.summarizer.summarize_session(session_id, user_id)
            log_info(f"[SessionConsolidator] Summarization complete for {session_id}")
        except Exception as exc:
            log_error(f"[SessionConsolidator] Summarization failed for {session_id}: {exc}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight summarization to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
