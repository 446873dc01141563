"""Shared test fixtures — mock A2A agents served through httpx.MockTransport."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from openribcage.a2a.models import Agent, AgentCard, AgentStatus


def card_document(**overrides: Any) -> dict[str, Any]:
    """A fully valid AgentCard document as an agent would serve it."""
    doc: dict[str, Any] = {
        "name": "k8s-agent",
        "description": "Kubernetes operations agent",
        "url": "http://agents.local/k8s",
        "version": "1.2.0",
        "capabilities": {
            "streaming": True,
            "pushNotifications": False,
            "stateTransitionHistory": True,
        },
        "defaultInputModes": ["text/plain"],
        "defaultOutputModes": ["text/plain"],
        "skills": [
            {
                "id": "cluster_status",
                "name": "Cluster Status",
                "description": "Reports cluster health",
                "tags": ["kubernetes", "monitoring"],
                "examples": ["what is the status of my cluster"],
            },
        ],
        "endpoints": [
            {
                "type": "a2a",
                "url": "http://agents.local/k8s/rpc",
                "methods": ["tasks/send", "tasks/status", "tasks/cancel"],
            },
            {
                "type": "streaming",
                "url": "https://agents.local/k8s/stream",
                "methods": [],
            },
        ],
        "metadata": {"team": "platform"},
    }
    doc.update(overrides)
    return doc


def rpc_body(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content)


def rpc_result(request: httpx.Request, result: Any) -> httpx.Response:
    """JSON-RPC success echoing the request's correlation id."""
    body = rpc_body(request)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def rpc_error(request: httpx.Request, code: int, message: str, data: Any = None) -> httpx.Response:
    body = rpc_body(request)
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


class FakeClock:
    """Settable clock for registry time travel."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_agent(
    agent_id: str,
    *,
    streaming: bool = False,
    status: AgentStatus = AgentStatus.ONLINE,
    last_seen: datetime | None = None,
    skills: list[dict[str, Any]] | None = None,
) -> Agent:
    card = AgentCard.model_validate(card_document(
        name=agent_id,
        capabilities={"streaming": streaming},
        skills=skills or [],
    ))
    agent = Agent.from_card(card, url=f"http://{agent_id}.local", agent_id=agent_id, status=status)
    if last_seen is not None:
        agent.last_seen = last_seen
    return agent


@pytest.fixture
def card_doc() -> dict[str, Any]:
    return card_document()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
