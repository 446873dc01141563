"""Tests for AgentDirectory — discover, register, skill search."""

import httpx
import pytest

from openribcage.a2a.discovery import AgentCardDiscoverer
from openribcage.a2a.models import AgentStatus
from openribcage.events.bus import AGENT_REGISTERED, AGENT_UNREGISTERED, EventBus
from openribcage.exceptions import AgentCardNotFoundError, AgentNotFoundError
from openribcage.registry.directory import AgentDirectory
from openribcage.registry.registry import AgentRegistry
from tests.conftest import RecordingTransport, card_document, make_agent


def _agents_transport() -> RecordingTransport:
    cards = {
        "k8s.local": card_document(),
        "monitor.local": card_document(
            name="monitor",
            version="0.3.0",
            skills=[{
                "id": "uptime",
                "name": "Uptime Check",
                "description": "Checks service uptime and latency",
                "tags": ["monitoring", "uptime"],
            }],
        ),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        doc = cards.get(request.url.host)
        if doc is None:
            return httpx.Response(404)
        return httpx.Response(200, json=doc)

    return RecordingTransport(handler)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def directory(bus):
    discoverer = AgentCardDiscoverer(retry_delay=0, transport=_agents_transport())
    return AgentDirectory(discoverer, AgentRegistry(), event_bus=bus)


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_discovers_and_stores(self, directory, bus):
        agent = await directory.register("http://k8s.local/")

        assert agent.id == "k8s-agent@1.2.0"
        assert agent.url == "http://k8s.local"
        assert agent.status == AgentStatus.ONLINE
        assert directory.registry.get(agent.id).card.name == "k8s-agent"

        events = bus.recent(AGENT_REGISTERED)
        assert len(events) == 1
        assert events[0].data["capabilities"] == ["streaming", "state_transition_history"]

    @pytest.mark.asyncio
    async def test_register_with_explicit_id(self, directory):
        agent = await directory.register("http://monitor.local", agent_id="mon")
        assert agent.id == "mon"
        assert "mon" in directory.registry

    @pytest.mark.asyncio
    async def test_register_missing_card(self, directory, bus):
        with pytest.raises(AgentCardNotFoundError):
            await directory.register("http://nowhere.local")
        assert len(directory.registry) == 0
        assert bus.recent(AGENT_REGISTERED) == []

    @pytest.mark.asyncio
    async def test_unregister(self, directory, bus):
        agent = await directory.register("http://k8s.local")
        await directory.unregister(agent.id)

        assert agent.id not in directory.registry
        assert bus.recent(AGENT_UNREGISTERED)[0].data == {"agent_id": agent.id}

        with pytest.raises(AgentNotFoundError):
            await directory.unregister(agent.id)


class TestFindBySkill:
    @pytest.mark.asyncio
    async def test_ranks_by_keyword_hits(self, directory):
        await directory.register("http://k8s.local")
        await directory.register("http://monitor.local")

        matches = directory.find_by_skill(["monitoring", "uptime"])

        assert [skill.id for _, skill in matches] == ["uptime", "cluster_status"]
        assert matches[0][0].name == "monitor"

    @pytest.mark.asyncio
    async def test_case_insensitive(self, directory):
        await directory.register("http://k8s.local")
        assert len(directory.find_by_skill(["KUBERNETES"])) == 1

    def test_skips_offline_agents(self, directory):
        directory.registry.register(make_agent(
            "sleepy",
            status=AgentStatus.OFFLINE,
            skills=[{"id": "s", "name": "search", "tags": ["search"]}],
        ))
        assert directory.find_by_skill(["search"]) == []

    def test_blank_keywords_match_nothing(self, directory):
        directory.registry.register(make_agent(
            "alpha", skills=[{"id": "s", "name": "search"}],
        ))
        assert directory.find_by_skill(["", "  "]) == []
