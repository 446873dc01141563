"""AgentCard discovery — find, fetch and validate an agent's identity document.

Usage:
    discoverer = AgentCardDiscoverer(timeout=10.0)
    card = await discoverer.discover("localhost:8083/api/a2a/kagent/k8s-agent")

The card lives at ``<base>/.well-known/agent.json``. Transport failures and
5xx answers are retried a bounded number of times; 4xx answers and
malformed documents fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlsplit, urlunsplit

import httpx
import orjson
from pydantic import ValidationError

from openribcage import __version__
from openribcage.a2a.models import (
    ENDPOINT_TYPES,
    STANDARD_METHODS,
    AgentCard,
    Endpoint,
    EndpointType,
)
from openribcage.exceptions import (
    AccessDeniedError,
    AgentCardNotFoundError,
    AgentCardValidationError,
    DecodeError,
    HTTPStatusError,
    OpenRibcageError,
    RetriesExhaustedError,
    TransportError,
)

_logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/agent.json"
USER_AGENT = f"openribcage/{__version__} (A2A-Protocol-Client)"


def build_discovery_url(agent_url: str) -> str:
    """Turn an agent base address into its AgentCard URL.

    Missing scheme defaults to http. Applying this to its own output
    returns the same URL.
    """
    agent_url = agent_url.strip()
    if not agent_url:
        return ""
    if not agent_url.startswith(("http://", "https://")):
        agent_url = "http://" + agent_url

    parts = urlsplit(agent_url)
    path = parts.path.rstrip("/")
    if not path.endswith(WELL_KNOWN_PATH):
        path += WELL_KNOWN_PATH
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def validate_endpoint(endpoint: Endpoint) -> None:
    """Raise AgentCardValidationError(field="url"|"type"|"methods") on a bad endpoint."""
    if not endpoint.url:
        raise AgentCardValidationError("url", "endpoint URL is required")
    try:
        url = httpx.URL(endpoint.url)
    except httpx.InvalidURL as e:
        raise AgentCardValidationError("url", f"invalid endpoint URL: {e}") from e
    if url.scheme not in ("http", "https"):
        raise AgentCardValidationError(
            "url", "endpoint URL must use http or https scheme",
        )
    if not url.host:
        raise AgentCardValidationError("url", "endpoint URL must be absolute")

    if endpoint.type not in ENDPOINT_TYPES:
        raise AgentCardValidationError(
            "type",
            f"unsupported endpoint type: {endpoint.type!r} "
            f"(supported: {sorted(ENDPOINT_TYPES)})",
        )

    if endpoint.type == EndpointType.A2A.value:
        if not endpoint.methods:
            raise AgentCardValidationError(
                "methods", "a2a endpoint must declare at least one method",
            )
        for method in endpoint.methods:
            if method not in STANDARD_METHODS:
                raise AgentCardValidationError(
                    "methods", f"invalid A2A method: {method!r}",
                )


def validate_card(card: AgentCard) -> None:
    """Check required fields and every declared endpoint."""
    if not card.name.strip():
        raise AgentCardValidationError("name", "agent name is required")
    if not card.version.strip():
        raise AgentCardValidationError("version", "agent version is required")

    for i, endpoint in enumerate(card.endpoints):
        try:
            validate_endpoint(endpoint)
        except AgentCardValidationError as e:
            raise AgentCardValidationError(
                f"endpoints[{i}].{e.field}", e.reason,
            ) from e


def parse_card(raw: bytes | str) -> AgentCard:
    """Decode an AgentCard document and validate it."""
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"failed to parse AgentCard JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError("AgentCard JSON must be an object")
    try:
        card = AgentCard.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"AgentCard does not match the expected shape: {e}") from e
    validate_card(card)
    return card


class AgentCardDiscoverer:
    """Fetches AgentCards with bounded retry and validates them."""

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._retry_delay = retry_delay
        self._headers = dict(headers or {})
        self._transport = transport

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    async def discover(self, agent_url: str) -> AgentCard:
        """Fetch, parse and validate the AgentCard behind ``agent_url``."""
        card_url = build_discovery_url(agent_url)
        if not card_url:
            raise ValueError("agent URL is required")
        _logger.debug("Discovering AgentCard from %s", card_url)

        raw = await self._fetch_with_retry(card_url)
        card = parse_card(raw)

        _logger.info(
            "Discovered AgentCard: %s (version: %s)", card.name, card.version,
        )
        return card

    def validate(self, card: AgentCard) -> None:
        validate_card(card)

    def parse(self, raw: bytes | str) -> AgentCard:
        return parse_card(raw)

    async def _fetch_with_retry(self, url: str) -> bytes:
        attempt = 0
        last_error: OpenRibcageError
        while True:
            attempt += 1
            try:
                async with self._http() as client:
                    resp = await client.get(url)
            except httpx.DecodingError as e:
                raise DecodeError(f"undecodable AgentCard body from {url}: {e}") from e
            except httpx.RequestError as e:
                # Connection failures and redirect loops alike.
                last_error = TransportError(f"GET {url} failed: {e}")
                last_error.__cause__ = e
            else:
                status = resp.status_code
                if status == 200:
                    return resp.content
                if status == 404:
                    raise AgentCardNotFoundError(
                        status, url, f"AgentCard not found (404) at {url}",
                    )
                if status in (401, 403):
                    raise AccessDeniedError(
                        status, url, f"access denied ({status}) to {url}",
                    )
                http_error = HTTPStatusError(status, url)
                if status >= 400 and not http_error.is_server_error:
                    raise http_error
                last_error = http_error

            if attempt >= self.max_attempts:
                raise RetriesExhaustedError(attempt, last_error) from last_error
            _logger.debug(
                "Retry attempt %d/%d for %s", attempt, self._max_retries, url,
            )
            await asyncio.sleep(self._retry_delay)

    def _http(self) -> httpx.AsyncClient:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            **self._headers,
        }
        return httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
            follow_redirects=True,
        )
