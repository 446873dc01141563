"""A2A Client — JSON-RPC task calls and SSE streams against remote agents.

Usage:
    client = A2AClient("http://localhost:8083/api/a2a/kagent")
    resp = await client.send_task("k8s-agent", TaskRequest(
        message=Message.text("What is the status of my cluster?"),
    ))
    async with contextlib.aclosing(client.stream_task("k8s-agent", req)) as events:
        async for event in events:
            ...

Every call carries a fresh correlation id. The client never retries;
whether a task call is safe to repeat is the caller's decision.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, TypeVar

import httpx
import orjson
from pydantic import BaseModel, ValidationError

from openribcage.a2a.discovery import build_discovery_url
from openribcage.a2a.models import (
    A2AMethod,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    StreamResponse,
    TaskRequest,
    TaskResponse,
    TaskStatus,
)
from openribcage.exceptions import (
    DecodeError,
    HTTPStatusError,
    IDMismatchError,
    OpenRibcageError,
    ProtocolError,
    StreamTimeoutError,
    TransportError,
)
from openribcage.types import new_request_id

_logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"

_M = TypeVar("_M", bound=BaseModel)


class A2AClient:
    """HTTP client for interacting with remote A2A agents."""

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
        stream_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._auth = auth
        self._stream_timeout = stream_timeout
        self._transport = transport

    def endpoint_url(self, agent_id: str) -> str:
        """Absolute URLs are used as given; anything else is joined under base_url."""
        if agent_id.startswith(("http://", "https://")):
            return agent_id
        if not agent_id:
            return self._base_url
        return f"{self._base_url}/{agent_id.lstrip('/')}"

    # ── Request / response ───────────────────────────────────

    async def send_task(self, agent_id: str, request: TaskRequest) -> TaskResponse:
        """Send a task and wait for its response (tasks/send)."""
        rpc = self._build_rpc(A2AMethod.TASKS_SEND, self._task_params(request))
        envelope = await self._rpc_call(agent_id, rpc)
        response = _decode_result(envelope, TaskResponse, rpc.method)
        if response.id != request.id:
            raise IDMismatchError(request.id, response.id)
        return response

    async def send_message(self, agent_id: str, message: Message) -> TaskResponse:
        """Send a bare message; the agent decides the task (message/send)."""
        rpc = self._build_rpc(
            A2AMethod.MESSAGE_SEND,
            {"message": message.model_dump(mode="json", exclude_none=True)},
        )
        envelope = await self._rpc_call(agent_id, rpc)
        return _decode_result(envelope, TaskResponse, rpc.method)

    async def get_task_status(self, agent_id: str, task_id: str) -> TaskStatus:
        """Poll the status of a remote task (tasks/status)."""
        rpc = self._build_rpc(A2AMethod.TASKS_STATUS, {"id": task_id})
        envelope = await self._rpc_call(agent_id, rpc)
        status = _decode_result(envelope, TaskStatus, rpc.method)
        if status.id != task_id:
            raise IDMismatchError(task_id, status.id)
        return status

    async def cancel_task(self, agent_id: str, task_id: str) -> None:
        """Cancel a remote task (tasks/cancel). No result payload is required."""
        rpc = self._build_rpc(A2AMethod.TASKS_CANCEL, {"id": task_id})
        await self._rpc_call(agent_id, rpc)

    async def ping(self, agent_url: str) -> bool:
        """True if the agent's discovery document answers with 2xx."""
        url = build_discovery_url(agent_url)
        try:
            async with self._http() as client:
                resp = await client.get(url, headers={"Accept": "application/json"})
        except httpx.RequestError as e:
            _logger.debug("Ping %s failed: %s", url, e)
            return False
        return resp.is_success

    # ── Streaming ────────────────────────────────────────────

    def stream_task(
        self, agent_id: str, request: TaskRequest, deadline: float | None = None,
    ) -> AsyncIterator[StreamResponse]:
        """Send a task and iterate its SSE updates (tasks/sendSubscribe).

        Iteration ends when the server closes the connection. A malformed
        event raises DecodeError and ends the stream. Cancelling the
        consuming task closes the connection and raises CancelledError.
        """
        rpc = self._build_rpc(
            A2AMethod.TASKS_SEND_SUBSCRIBE, self._task_params(request),
        )
        return self._stream(agent_id, rpc, deadline)

    def stream_message(
        self, agent_id: str, message: Message, deadline: float | None = None,
    ) -> AsyncIterator[StreamResponse]:
        """Streaming counterpart of send_message (message/stream)."""
        rpc = self._build_rpc(
            A2AMethod.MESSAGE_STREAM,
            {"message": message.model_dump(mode="json", exclude_none=True)},
        )
        return self._stream(agent_id, rpc, deadline)

    async def _stream(
        self, agent_id: str, rpc: JsonRpcRequest, deadline: float | None,
    ) -> AsyncIterator[StreamResponse]:
        url = self.endpoint_url(agent_id)
        deadline = deadline if deadline is not None else self._stream_timeout
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **self._headers,
        }
        _logger.debug("A2A stream: %s -> %s (id=%s)", rpc.method, url, rpc.id)

        try:
            async with self._http(streaming=True) as client:
                async with client.stream(
                    "POST", url, content=_encode(rpc), headers=headers,
                ) as resp:
                    if resp.status_code != 200:
                        raise HTTPStatusError(resp.status_code, url)

                    async for line in _read_lines(resp, deadline):
                        if not line.startswith(SSE_DATA_PREFIX):
                            continue
                        payload = line[len(SSE_DATA_PREFIX):].strip()
                        if not payload:
                            continue
                        yield _decode_event(payload)
        except httpx.RequestError as e:
            raise _wrap_request_error(e, f"{rpc.method} stream to {url}") from e

    # ── Internals ────────────────────────────────────────────

    @staticmethod
    def _task_params(request: TaskRequest) -> dict[str, Any]:
        return {
            "id": request.id,
            "message": request.message.model_dump(mode="json", exclude_none=True),
        }

    @staticmethod
    def _build_rpc(method: A2AMethod, params: dict[str, Any]) -> JsonRpcRequest:
        return JsonRpcRequest(method=method.value, params=params, id=new_request_id())

    async def _rpc_call(self, agent_id: str, rpc: JsonRpcRequest) -> JsonRpcResponse:
        """Execute a JSON-RPC call and return the checked envelope."""
        url = self.endpoint_url(agent_id)
        headers = {"Content-Type": "application/json", **self._headers}
        _logger.debug("A2A request: %s -> %s (id=%s)", rpc.method, url, rpc.id)

        try:
            async with self._http() as client:
                resp = await client.post(url, content=_encode(rpc), headers=headers)
        except httpx.RequestError as e:
            raise _wrap_request_error(e, f"{rpc.method} to {url}") from e

        if not resp.is_success:
            raise HTTPStatusError(resp.status_code, url)

        envelope = _decode_envelope(resp.content)
        if envelope.error is not None:
            err = envelope.error
            _logger.debug(
                "A2A error response: %s <- %s (%d %s)",
                rpc.method, url, err.code, err.message,
            )
            raise ProtocolError(err.code, err.message, err.data)
        if envelope.id is not None and envelope.id != rpc.id:
            raise IDMismatchError(str(rpc.id), envelope.id)
        return envelope

    def _http(self, streaming: bool = False) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self._timeout)
        if streaming:
            # Gaps between events are unbounded; the stream deadline caps the total.
            timeout = httpx.Timeout(self._timeout, read=None)
        return httpx.AsyncClient(
            timeout=timeout,
            auth=self._auth,
            transport=self._transport,
        )


def _wrap_request_error(e: httpx.RequestError, what: str) -> OpenRibcageError:
    """Map an httpx request failure onto the openribcage hierarchy."""
    if isinstance(e, httpx.DecodingError):
        return DecodeError(f"{what}: undecodable response body: {e}")
    return TransportError(f"{what} failed: {e}")


def _encode(rpc: JsonRpcRequest) -> bytes:
    return orjson.dumps(rpc.model_dump(mode="json"))


def _decode_envelope(raw: bytes) -> JsonRpcResponse:
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"failed to decode JSON-RPC response: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError("JSON-RPC response must be an object")
    try:
        envelope = JsonRpcResponse.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"malformed JSON-RPC envelope: {e}") from e
    if envelope.error is not None and envelope.result is not None:
        raise DecodeError("JSON-RPC response carries both result and error")
    return envelope


def _decode_result(envelope: JsonRpcResponse, model: type[_M], method: str) -> _M:
    if not envelope.has_result or envelope.result is None:
        raise DecodeError(f"{method} response has no result")
    try:
        return model.model_validate(envelope.result)
    except ValidationError as e:
        raise DecodeError(f"malformed {method} result: {e}") from e


def _decode_event(payload: str) -> StreamResponse:
    try:
        return StreamResponse.model_validate(orjson.loads(payload))
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise DecodeError(f"failed to decode stream event: {e}") from e


async def _read_lines(
    resp: httpx.Response, deadline: float | None,
) -> AsyncIterator[str]:
    """Yield response lines, raising StreamTimeoutError once ``deadline`` seconds pass."""
    lines = resp.aiter_lines()
    if deadline is None:
        async for line in lines:
            yield line
        return

    loop = asyncio.get_running_loop()
    expires = loop.time() + deadline
    while True:
        remaining = expires - loop.time()
        if remaining <= 0:
            raise StreamTimeoutError(f"stream exceeded {deadline}s deadline")
        try:
            line = await asyncio.wait_for(lines.__anext__(), remaining)
        except StopAsyncIteration:
            return
        except asyncio.TimeoutError:
            raise StreamTimeoutError(f"stream exceeded {deadline}s deadline") from None
        yield line
