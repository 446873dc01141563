"""Custom exception hierarchy for openribcage.

Every failure a caller can see maps to exactly one class here, so callers
decide retry/alert/surface by ``isinstance`` rather than by message text.
"""

from __future__ import annotations

from typing import Any


class OpenRibcageError(Exception):
    """Base for all openribcage errors."""


# ── Transport ────────────────────────────────────────────────


class TransportError(OpenRibcageError):
    """Connection failure or timeout talking to a remote agent."""


class StreamTimeoutError(TransportError):
    """A streaming call exceeded its deadline."""


class HTTPStatusError(OpenRibcageError):
    """The remote answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str = "", message: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message or f"HTTP {status_code} from {url}")

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


class AgentCardNotFoundError(HTTPStatusError):
    """No AgentCard at the well-known path (404)."""


class AccessDeniedError(HTTPStatusError):
    """The AgentCard endpoint refused us (401/403)."""


class RetriesExhaustedError(OpenRibcageError):
    """Discovery gave up after its bounded retry budget."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts: {last_error}")


# ── Payload ──────────────────────────────────────────────────


class DecodeError(OpenRibcageError):
    """Malformed JSON or a payload that does not fit the expected shape."""


class AgentCardValidationError(OpenRibcageError):
    """An AgentCard broke a schema or semantic rule."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


# ── Protocol ─────────────────────────────────────────────────


class ProtocolError(OpenRibcageError):
    """The agent returned a well-formed JSON-RPC error object."""

    def __init__(self, code: int | None, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        if code is None:
            super().__init__(message)
        else:
            super().__init__(f"JSON-RPC error {code}: {message}")


class IDMismatchError(ProtocolError):
    """A response answered a different request or task than the one sent."""

    def __init__(self, expected: str, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(None, f"id mismatch: sent {expected!r}, got {actual!r}")


# ── Registry / config ───────────────────────────────────────


class AgentNotFoundError(OpenRibcageError):
    """No agent with the given ID exists."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"agent not found: {agent_id}")


class AuthConfigError(OpenRibcageError):
    """Credentials are incomplete for their declared type."""
