"""CLI runtime context — builds library objects from settings, bridges sync to async."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

from rich.logging import RichHandler

from openribcage.a2a.auth import AuthType, CredentialAuth, Credentials
from openribcage.a2a.client import A2AClient
from openribcage.a2a.discovery import AgentCardDiscoverer
from openribcage.config import OpenRibcageSettings, settings
from openribcage.exceptions import AuthConfigError


def configure_logging(verbose: bool = False, level: str | None = None) -> None:
    """Route library logs through rich. Only the CLI calls this."""
    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName((level or settings.log_level).upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def build_auth(cfg: OpenRibcageSettings = settings) -> CredentialAuth | None:
    try:
        auth_type = AuthType(cfg.auth_type.strip().lower())
    except ValueError:
        raise AuthConfigError(f"unknown auth type: {cfg.auth_type!r}") from None
    creds = Credentials(
        type=auth_type,
        token=cfg.auth_token,
        api_key=cfg.auth_api_key,
    )
    if creds.type == AuthType.NONE:
        return None
    return CredentialAuth(creds)


def build_discoverer(
    timeout: float | None = None, cfg: OpenRibcageSettings = settings,
) -> AgentCardDiscoverer:
    return AgentCardDiscoverer(
        timeout=timeout if timeout is not None else cfg.timeout,
        max_retries=cfg.retry_attempts,
        retry_delay=cfg.retry_delay,
        headers=cfg.default_headers,
    )


def build_client(
    timeout: float | None = None, cfg: OpenRibcageSettings = settings,
) -> A2AClient:
    return A2AClient(
        base_url=cfg.base_url,
        timeout=timeout if timeout is not None else cfg.timeout,
        headers=cfg.default_headers,
        auth=build_auth(cfg),
        stream_timeout=cfg.stream_timeout,
    )


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)
