"""Health monitor — periodically probes registered agents.

Each pass snapshots the registry, pings every agent and reports the
outcome through ``AgentRegistry.update_status``. A failed probe leaves
last-seen untouched, so an agent that stays unreachable eventually ages
out through stale cleanup.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from openribcage.a2a.client import A2AClient
from openribcage.a2a.models import Agent, AgentStatus
from openribcage.events.bus import AGENT_STATUS_CHANGED, EventBus
from openribcage.exceptions import AgentNotFoundError
from openribcage.registry.registry import AgentRegistry

logger = structlog.get_logger()

Probe = Callable[[Agent], Awaitable[bool]]


class HealthMonitor:
    """Background task that keeps registry statuses current."""

    def __init__(
        self,
        registry: AgentRegistry,
        client: A2AClient | None = None,
        interval: float = 60.0,
        probe: Probe | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._registry = registry
        self._client = client or A2AClient()
        self._interval = interval
        self._probe = probe or self._ping
        self._bus = event_bus
        self._running = False
        self._task: asyncio.Task | None = None

    async def check(self, agent: Agent) -> AgentStatus:
        """Probe one agent and record the result."""
        try:
            healthy = await self._probe(agent)
        except Exception as e:
            logger.warning("health_probe_failed", agent_id=agent.id, error=str(e))
            status, touch = AgentStatus.ERROR, False
        else:
            status, touch = (
                (AgentStatus.ONLINE, True) if healthy else (AgentStatus.OFFLINE, False)
            )

        try:
            self._registry.update_status(agent.id, status, touch=touch)
        except AgentNotFoundError:
            logger.debug("health_check_skipped", agent_id=agent.id)
            return status

        if status != agent.status:
            logger.info(
                "agent_status_changed",
                agent_id=agent.id, old=agent.status.value, new=status.value,
            )
            if self._bus:
                await self._bus.emit(AGENT_STATUS_CHANGED, {
                    "agent_id": agent.id,
                    "old": agent.status.value,
                    "new": status.value,
                }, source="health_monitor")
        return status

    async def run_once(self) -> dict[str, AgentStatus]:
        """Probe every registered agent concurrently."""
        agents = self._registry.list()
        statuses = await asyncio.gather(*(self.check(a) for a in agents))
        return {a.id: s for a, s in zip(agents, statuses)}

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("health_pass_failed", error=str(e))
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break

    async def _ping(self, agent: Agent) -> bool:
        return await self._client.ping(agent.url)
