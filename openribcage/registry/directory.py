"""Agent directory — discovery and registration in one step.

Usage:
    directory = AgentDirectory(AgentCardDiscoverer(), AgentRegistry())
    agent = await directory.register("http://monitor:9000")
    matches = directory.find_by_skill(["uptime"])

Held in memory only; nothing survives a restart.
"""

from __future__ import annotations

import logging

from openribcage.a2a.discovery import AgentCardDiscoverer
from openribcage.a2a.models import Agent, AgentSkill, AgentStatus
from openribcage.events.bus import AGENT_REGISTERED, AGENT_UNREGISTERED, EventBus
from openribcage.registry.registry import AgentRegistry

_logger = logging.getLogger(__name__)


class AgentDirectory:
    """Discovers remote agents and files them in an AgentRegistry."""

    def __init__(
        self,
        discoverer: AgentCardDiscoverer,
        registry: AgentRegistry,
        event_bus: EventBus | None = None,
    ) -> None:
        self._discoverer = discoverer
        self._registry = registry
        self._bus = event_bus

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    async def register(self, base_url: str, agent_id: str | None = None) -> Agent:
        """Discover the agent at ``base_url`` and register it as online."""
        card = await self._discoverer.discover(base_url)
        agent = Agent.from_card(
            card,
            url=base_url.strip().rstrip("/"),
            agent_id=agent_id,
            status=AgentStatus.ONLINE,
        )
        self._registry.register(agent)
        _logger.info("Registered A2A agent: %s at %s", agent.id, agent.url)

        if self._bus:
            await self._bus.emit(AGENT_REGISTERED, {
                "agent_id": agent.id,
                "name": agent.name,
                "url": agent.url,
                "capabilities": card.capabilities.enabled(),
            }, source="agent_directory")
        return agent

    async def unregister(self, agent_id: str) -> None:
        self._registry.unregister(agent_id)
        if self._bus:
            await self._bus.emit(AGENT_UNREGISTERED, {
                "agent_id": agent_id,
            }, source="agent_directory")

    def find_by_skill(self, keywords: list[str]) -> list[tuple[Agent, AgentSkill]]:
        """Online agents whose skills match the keywords, best match first.

        Keywords are matched case-insensitively as substrings of skill
        tags, name, description and examples.
        """
        results: list[tuple[Agent, AgentSkill, int]] = []
        kw_lower = [k.lower() for k in keywords if k.strip()]

        for agent in self._registry.list():
            if agent.status != AgentStatus.ONLINE or agent.card is None:
                continue
            for skill in agent.card.skills:
                searchable = (
                    [t.lower() for t in skill.tags]
                    + [skill.name.lower(), skill.description.lower()]
                    + [e.lower() for e in skill.examples]
                )
                score = sum(1 for kw in kw_lower if any(kw in s for s in searchable))
                if score > 0:
                    results.append((agent, skill, score))

        results.sort(key=lambda x: x[2], reverse=True)
        return [(agent, skill) for agent, skill, _ in results]
