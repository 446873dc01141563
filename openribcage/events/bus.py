"""Event Bus — observable side effects of the registry and directory.

Registration, status changes and stale evictions are published here so
dashboards or persona layers can follow the registry without polling it.
Patterns use fnmatch: "registry.*" matches "registry.agent_evicted".
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections import deque
from datetime import datetime
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from openribcage.types import utcnow

_logger = logging.getLogger(__name__)

AGENT_REGISTERED = "registry.agent_registered"
AGENT_UNREGISTERED = "registry.agent_unregistered"
AGENT_EVICTED = "registry.agent_evicted"
AGENT_STATUS_CHANGED = "registry.status_changed"


class Event(BaseModel):
    topic: str
    data: dict[str, Any] = Field(default_factory=dict)
    source: str = ""
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}


EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """Async fan-out of registry events, with a short replay buffer."""

    def __init__(self, keep: int = 200) -> None:
        self._handlers: list[tuple[str, EventHandler]] = []
        self._recent: deque[Event] = deque(maxlen=keep)

    def subscribe(self, pattern: str, handler: EventHandler) -> Callable[[], None]:
        """Route matching events to ``handler``. Returns a function that undoes it."""
        entry = (pattern, handler)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    async def emit(self, topic: str, data: dict | None = None, source: str = "") -> Event:
        """Deliver an event to every matching handler concurrently.

        A failing handler is logged; the others still run.
        """
        event = Event(topic=topic, data=data or {}, source=source)
        self._recent.append(event)

        matched = [h for p, h in self._handlers if fnmatch.fnmatch(topic, p)]
        results = await asyncio.gather(*(h(event) for h in matched), return_exceptions=True)
        for handler, result in zip(matched, results):
            if isinstance(result, Exception):
                _logger.warning(
                    "Event handler %s failed on %s: %s",
                    getattr(handler, "__qualname__", handler), topic, result,
                )
        return event

    def recent(self, pattern: str = "*", limit: int | None = None) -> list[Event]:
        """Buffered events matching ``pattern``, newest first."""
        found = [e for e in reversed(self._recent) if fnmatch.fnmatch(e.topic, pattern)]
        return found if limit is None else found[:limit]
