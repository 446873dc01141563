"""Tests for HealthMonitor status transitions."""

import asyncio
from datetime import timedelta

import httpx
import pytest

from openribcage.a2a.client import A2AClient
from openribcage.a2a.models import Agent, AgentStatus
from openribcage.events.bus import AGENT_STATUS_CHANGED, EventBus
from openribcage.registry.health import HealthMonitor
from openribcage.registry.registry import AgentRegistry
from tests.conftest import card_document, make_agent


def _probe(results: dict):
    async def probe(agent: Agent) -> bool:
        outcome = results[agent.id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
    return probe


@pytest.fixture
def registry(clock):
    return AgentRegistry(stale_threshold=300, clock=clock)


class TestCheck:
    @pytest.mark.asyncio
    async def test_healthy_agent_is_online_and_touched(self, registry, clock):
        registry.register(make_agent("alpha", status=AgentStatus.OFFLINE, last_seen=clock()))
        monitor = HealthMonitor(registry, probe=_probe({"alpha": True}))

        clock.advance(60)
        status = await monitor.check(registry.get("alpha"))

        assert status == AgentStatus.ONLINE
        agent = registry.get("alpha")
        assert agent.status == AgentStatus.ONLINE
        assert agent.last_seen == clock()

    @pytest.mark.asyncio
    async def test_unhealthy_agent_goes_offline_without_touch(self, registry, clock):
        registry.register(make_agent("alpha", last_seen=clock()))
        monitor = HealthMonitor(registry, probe=_probe({"alpha": False}))

        clock.advance(60)
        status = await monitor.check(registry.get("alpha"))

        assert status == AgentStatus.OFFLINE
        agent = registry.get("alpha")
        assert agent.status == AgentStatus.OFFLINE
        assert agent.last_seen == clock() - timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_probe_exception_marks_error(self, registry, clock):
        registry.register(make_agent("alpha", last_seen=clock()))
        monitor = HealthMonitor(registry, probe=_probe({"alpha": RuntimeError("boom")}))

        status = await monitor.check(registry.get("alpha"))

        assert status == AgentStatus.ERROR
        assert registry.get("alpha").status == AgentStatus.ERROR

    @pytest.mark.asyncio
    async def test_unreachable_agent_ages_out(self, registry, clock):
        registry.register(make_agent("alpha", last_seen=clock()))
        monitor = HealthMonitor(registry, probe=_probe({"alpha": False}))

        for _ in range(6):
            clock.advance(60)
            await monitor.run_once()

        assert [a.id for a in registry.cleanup_stale()] == ["alpha"]

    @pytest.mark.asyncio
    async def test_unregistered_agent_is_skipped(self, registry):
        ghost = make_agent("ghost")
        monitor = HealthMonitor(registry, probe=_probe({"ghost": True}))

        status = await monitor.check(ghost)

        assert status == AgentStatus.ONLINE
        assert "ghost" not in registry

    @pytest.mark.asyncio
    async def test_status_change_publishes_event(self, registry):
        bus = EventBus()
        registry.register(make_agent("alpha", status=AgentStatus.ONLINE))
        registry.register(make_agent("beta", status=AgentStatus.ONLINE))
        monitor = HealthMonitor(
            registry, probe=_probe({"alpha": False, "beta": True}), event_bus=bus,
        )

        await monitor.run_once()

        events = bus.recent(AGENT_STATUS_CHANGED)
        assert len(events) == 1
        assert events[0].data == {"agent_id": "alpha", "old": "online", "new": "offline"}


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_reports_every_agent(self, registry):
        for name in ("a", "b", "c"):
            registry.register(make_agent(name))
        monitor = HealthMonitor(
            registry, probe=_probe({"a": True, "b": False, "c": ValueError("x")}),
        )

        result = await monitor.run_once()

        assert result == {
            "a": AgentStatus.ONLINE,
            "b": AgentStatus.OFFLINE,
            "c": AgentStatus.ERROR,
        }

    @pytest.mark.asyncio
    async def test_default_probe_pings_discovery_url(self, registry):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "up.local":
                return httpx.Response(200, json=card_document())
            return httpx.Response(503)

        client = A2AClient(transport=httpx.MockTransport(handler))
        registry.register(make_agent("up", status=AgentStatus.OFFLINE))
        registry.register(make_agent("down"))
        monitor = HealthMonitor(registry, client=client)

        result = await monitor.run_once()

        assert result == {"up": AgentStatus.ONLINE, "down": AgentStatus.OFFLINE}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_stop(self, registry):
        registry.register(make_agent("alpha", status=AgentStatus.OFFLINE))
        monitor = HealthMonitor(registry, interval=0.01, probe=_probe({"alpha": True}))

        await monitor.start()
        assert monitor.is_running
        try:
            for _ in range(100):
                if registry.get("alpha").status == AgentStatus.ONLINE:
                    break
                await asyncio.sleep(0.01)
        finally:
            await monitor.stop()

        assert registry.get("alpha").status == AgentStatus.ONLINE
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_double_start_is_noop(self, registry):
        monitor = HealthMonitor(registry, interval=10, probe=_probe({}))
        await monitor.start()
        first = monitor._task
        await monitor.start()
        assert monitor._task is first
        await monitor.stop()
