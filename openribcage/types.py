"""Core primitives shared across openribcage subsystems."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TypeAlias

# ── ID Types ──────────────────────────────────────────────────────────────────

AgentId: TypeAlias = str
TaskId: TypeAlias = str


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def new_request_id() -> str:
    """Correlation id for one JSON-RPC call. Unique per in-flight request."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
