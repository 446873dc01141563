"""A2A protocol data models.

Covers Agent Cards, endpoints, registry records, task envelopes, the SSE
stream envelope and JSON-RPC 2.0 wrappers. Wire names follow the protocol;
Python attributes are snake_case with aliases.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from openribcage.types import AgentId, TaskId, new_id, utcnow

JSONRPC_VERSION = "2.0"


class A2AMethod(str, Enum):
    """The six standard A2A JSON-RPC method names."""

    TASKS_SEND = "tasks/send"
    TASKS_SEND_SUBSCRIBE = "tasks/sendSubscribe"
    TASKS_STATUS = "tasks/status"
    TASKS_CANCEL = "tasks/cancel"
    MESSAGE_SEND = "message/send"
    MESSAGE_STREAM = "message/stream"


STANDARD_METHODS = frozenset(m.value for m in A2AMethod)


class EndpointType(str, Enum):
    A2A = "a2a"
    STREAMING = "streaming"
    WEBHOOK = "webhook"


ENDPOINT_TYPES = frozenset(t.value for t in EndpointType)


def _snake(name: str) -> str:
    """pushNotifications / push-notifications / push_notifications -> push_notifications."""
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name.strip())
    return name.replace("-", "_").lower()


# ── Agent Card ────────────────────────────────────────────────


class AgentSkill(BaseModel):
    """A capability that an agent advertises."""

    id: str = ""
    name: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "frozen": True}


class AgentCapabilities(BaseModel):
    """Protocol features the agent supports.

    The wire carries either an object of boolean flags or a list of
    capability names. Flags beyond the known three are kept as extras.
    """

    streaming: bool = False
    push_notifications: bool = Field(False, alias="pushNotifications")
    state_transition_history: bool = Field(False, alias="stateTransitionHistory")

    model_config = {"populate_by_name": True, "extra": "allow", "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, (list, tuple, set, frozenset)):
            value = {str(name): True for name in value}
        if isinstance(value, dict):
            return {_snake(str(k)): v for k, v in value.items()}
        return value

    def has(self, name: str) -> bool:
        """True only if the named flag is present and set. Unknown names are False."""
        key = _snake(name)
        if key in type(self).model_fields:
            return bool(getattr(self, key))
        return (self.model_extra or {}).get(key) is True

    def enabled(self) -> list[str]:
        names = [k for k in type(self).model_fields if getattr(self, k)]
        names += [k for k, v in (self.model_extra or {}).items() if v is True]
        return names


class AgentAuthentication(BaseModel):
    """Authentication requirements an agent declares."""

    type: str = ""
    config: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class Endpoint(BaseModel):
    """One network endpoint of an agent."""

    type: str = ""  # "a2a" | "streaming" | "webhook"
    url: str = ""
    methods: list[str] = Field(default_factory=list)
    description: str = ""
    headers: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class AgentCard(BaseModel):
    """A2A Agent Card — the identity document of an agent.

    Published at /.well-known/agent.json. Immutable once parsed; ``name``
    and ``version`` default to empty so validation can report them.
    """

    name: str = ""
    description: str = ""
    url: str = ""
    version: str = ""
    capabilities: AgentCapabilities = Field(default_factory=AgentCapabilities)
    authentication: AgentAuthentication | None = None
    default_input_modes: list[str] = Field(
        default_factory=list, alias="defaultInputModes",
    )
    default_output_modes: list[str] = Field(
        default_factory=list, alias="defaultOutputModes",
    )
    skills: list[AgentSkill] = Field(default_factory=list)
    endpoints: list[Endpoint] = Field(default_factory=list)
    metadata: Any = None

    model_config = {"populate_by_name": True, "frozen": True}

    def endpoint(self, type: str | EndpointType) -> Endpoint | None:
        """First endpoint of the given type, if any."""
        wanted = type.value if isinstance(type, EndpointType) else type
        for ep in self.endpoints:
            if ep.type == wanted:
                return ep
        return None


# ── Registry record ──────────────────────────────────────────


class AgentStatus(str, Enum):
    DISCOVERING = "discovering"
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class Agent(BaseModel):
    """A discovered agent as held by the registry."""

    id: AgentId
    name: str = ""
    url: str = ""
    card: AgentCard | None = None
    status: AgentStatus = AgentStatus.DISCOVERING
    discovered_at: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_card(
        cls,
        card: AgentCard,
        url: str = "",
        agent_id: str | None = None,
        status: AgentStatus = AgentStatus.DISCOVERING,
    ) -> Agent:
        return cls(
            id=agent_id or f"{card.name}@{card.version}",
            name=card.name,
            url=url or card.url,
            card=card,
            status=status,
        )

    def has_capability(self, name: str) -> bool:
        return self.card is not None and self.card.capabilities.has(name)

    @property
    def rpc_url(self) -> str:
        """Where JSON-RPC calls go: the card's a2a endpoint, else the agent URL."""
        if self.card is not None:
            ep = self.card.endpoint(EndpointType.A2A)
            if ep is not None:
                return ep.url
        return self.url


# ── Messages & Parts ─────────────────────────────────────────


class FilePart(BaseModel):
    """A file attachment. ``content`` is base64 text when inlined."""

    name: str = ""
    mime_type: str = ""
    size: int = 0
    url: str | None = None
    content: str | None = None


class Part(BaseModel):
    """Atomic content unit within a message."""

    type: str = "text"  # "text" | "file" | "data"
    text: str | None = None
    data: Any = None
    file: FilePart | None = None


class Message(BaseModel):
    """A single communication turn."""

    role: str = "user"  # "user" | "agent"
    parts: list[Part] = Field(default_factory=list)

    @classmethod
    def text(cls, text: str, role: str = "user") -> Message:
        return cls(role=role, parts=[Part(type="text", text=text)])


# ── Tasks ─────────────────────────────────────────────────────


class TaskRequest(BaseModel):
    id: TaskId = Field(default_factory=new_id)
    message: Message


class TaskResponse(BaseModel):
    id: TaskId
    message: Message | None = None
    status: str = ""
    error: str | None = None


class TaskStatus(BaseModel):
    id: TaskId
    status: str = ""
    progress: float | None = Field(None, ge=0.0, le=1.0)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None


class StreamResponse(BaseModel):
    """One SSE event. ``done`` marks the terminal event of a stream."""

    id: str = ""
    timestamp: datetime | None = None
    type: str = ""
    data: Any = None
    done: bool = False


# ── JSON-RPC 2.0 ─────────────────────────────────────────────


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request."""

    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: dict[str, Any] = Field(default_factory=dict)
    id: int | str | None = None


class JsonRpcError(BaseModel):
    code: int
    message: str = ""
    data: Any = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response."""

    jsonrpc: str = JSONRPC_VERSION
    result: Any = None
    error: JsonRpcError | None = None
    id: int | str | None = None

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set
