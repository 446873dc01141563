"""Agent Registry — the live map of known A2A agents.

One reader/writer lock guards the whole map. Readers get copies, so a
caller holding an Agent can never race a later write. A background task
periodically evicts agents that have not been seen within the stale
threshold.

Anything that changes an entry (health checks included) goes through
``update_status``; nothing outside this class touches the map.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import structlog

from openribcage.a2a.models import Agent, AgentStatus
from openribcage.events.bus import AGENT_EVICTED, EventBus
from openribcage.exceptions import AgentNotFoundError
from openribcage.types import utcnow

logger = structlog.get_logger()

Clock = Callable[[], datetime]


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers.

    Not reentrant: never take it twice on the same thread.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class AgentRegistry:
    """In-memory store of agents keyed by id."""

    def __init__(
        self,
        cleanup_interval: float = 300.0,
        stale_threshold: float = 600.0,
        event_bus: EventBus | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._agents: dict[str, Agent] = {}
        self._lock = ReadWriteLock()
        self._cleanup_interval = cleanup_interval
        self._stale_threshold = timedelta(seconds=stale_threshold)
        self._bus = event_bus
        self._clock = clock
        self._running = False
        self._task: asyncio.Task | None = None

    # ── Writes ───────────────────────────────────────────────

    def register(self, agent: Agent) -> None:
        """Add or overwrite an agent by id. Does not probe reachability."""
        if not agent.id:
            raise ValueError("agent id is required")
        entry = agent.model_copy(update={
            "discovered_at": _aware(agent.discovered_at),
            "last_seen": _aware(agent.last_seen),
        })
        with self._lock.write():
            self._agents[entry.id] = entry
        logger.info("agent_registered", agent_id=entry.id, url=entry.url)

    def unregister(self, agent_id: str) -> None:
        with self._lock.write():
            if agent_id not in self._agents:
                raise AgentNotFoundError(agent_id)
            del self._agents[agent_id]
        logger.info("agent_unregistered", agent_id=agent_id)

    def update_status(
        self, agent_id: str, status: AgentStatus, *, touch: bool = True,
    ) -> Agent:
        """Set an agent's status; ``touch`` also refreshes its last-seen time.

        Returns a copy of the updated entry.
        """
        with self._lock.write():
            agent = self._agents.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(agent_id)
            agent.status = status
            if touch:
                agent.last_seen = _aware(self._clock())
            snapshot = agent.model_copy()
        logger.debug("agent_status_updated", agent_id=agent_id, status=status.value)
        return snapshot

    # ── Reads ────────────────────────────────────────────────

    def get(self, agent_id: str) -> Agent:
        with self._lock.read():
            agent = self._agents.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(agent_id)
            return agent.model_copy()

    def list(self) -> list[Agent]:
        """Point-in-time snapshot of every entry. Order is not guaranteed."""
        with self._lock.read():
            return [a.model_copy() for a in self._agents.values()]

    def find_by_capability(self, capability: str) -> list[Agent]:
        """Online agents whose card sets the named capability flag."""
        with self._lock.read():
            return [
                a.model_copy()
                for a in self._agents.values()
                if a.status == AgentStatus.ONLINE and a.has_capability(capability)
            ]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        with self._lock.read():
            return agent_id in self._agents

    # ── Stale cleanup ────────────────────────────────────────

    def cleanup_stale(self, now: datetime | None = None) -> list[Agent]:
        """Evict every agent silent for longer than the stale threshold."""
        now = _aware(now if now is not None else self._clock())
        evicted: list[Agent] = []
        with self._lock.write():
            for agent_id, agent in list(self._agents.items()):
                if now - agent.last_seen > self._stale_threshold:
                    evicted.append(self._agents.pop(agent_id))

        for agent in evicted:
            logger.warning(
                "stale_agent_evicted",
                agent_id=agent.id,
                name=agent.name,
                last_seen=agent.last_seen.isoformat(),
            )
        return evicted

    async def run_cleanup_once(self, now: datetime | None = None) -> list[Agent]:
        """One cleanup pass, publishing an eviction event per removed agent."""
        evicted = self.cleanup_stale(now)
        if self._bus:
            for agent in evicted:
                await self._bus.emit(AGENT_EVICTED, {
                    "agent_id": agent.id,
                    "name": agent.name,
                    "url": agent.url,
                    "last_seen": agent.last_seen.isoformat(),
                }, source="agent_registry")
        return evicted

    async def start_cleanup(self) -> None:
        """Start the periodic cleanup task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def is_cleaning(self) -> bool:
        return self._running

    async def _cleanup_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._cleanup_interval)
            except asyncio.CancelledError:
                break
            try:
                await self.run_cleanup_once()
            except Exception as e:
                logger.error("registry_cleanup_failed", error=str(e))
