"""
Typed publish/subscribe event bus.

``InMemoryEventBus.publish`` awaits every handler for the topic
concurrently on the publishing task. A failing handler is logged and does
not stop the others or fail the publisher. Handlers that must not delay
the publisher (for example memory consolidation) schedule their own
background work.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List

from dreamweaver.logging_utils import log_error
from dreamweaver.schemas import DomainEvent


SLEEP_CUE_DETECTED = "SLEEP_CUE_DETECTED"
STORY_BEAT_COMPLETED = "STORY_BEAT_COMPLETED"

EventHandler = Callable[[DomainEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


class EventBus(ABC):
    @abstractmethod
    def subscribe(self, topic: str, handler: EventHandler) -> Unsubscribe:
        """Register ``handler`` for ``topic``; returns a callable that removes it."""
        pass

    @abstractmethod
    async def publish(self, topic: str, event: DomainEvent) -> None:
        """Deliver ``event`` to every handler subscribed to ``topic``."""
        pass


class InMemoryEventBus(EventBus):
    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: EventHandler) -> Unsubscribe:
        self._handlers[topic].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def handler_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def publish(self, topic: str, event: DomainEvent) -> None:
        handlers = list(self._handlers.get(topic, []))
        if not handlers:
            return

        results = await asyncio.gather(
            *(handler(event) for handler in handlers), return_exceptions=True
        )
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                name = getattr(handler, "__qualname__", repr(handler))
                log_error(f"[EventBus] Handler {name} failed for {topic}: {result}")
