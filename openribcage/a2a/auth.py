"""Credentials applied to outgoing A2A requests.

Credentials are precomputed by the caller; this module only turns them
into headers. No token acquisition or refresh happens here.

Usage:
    auth = CredentialAuth(Credentials(type="bearer", token="..."))
    client = A2AClient(base_url, auth=auth)
"""

from __future__ import annotations

from enum import Enum
from typing import Generator

import httpx
from pydantic import BaseModel, Field

from openribcage.exceptions import AuthConfigError


class AuthType(str, Enum):
    NONE = "none"
    BEARER = "bearer"
    APIKEY = "apikey"


class Credentials(BaseModel):
    type: AuthType = AuthType.NONE
    token: str = ""
    api_key: str = ""
    headers: dict[str, str] = Field(default_factory=dict)

    def check(self) -> None:
        """Raise AuthConfigError if the declared type lacks its secret."""
        if self.type == AuthType.BEARER and not self.token.strip():
            raise AuthConfigError("bearer token is required")
        if self.type == AuthType.APIKEY and not self.api_key.strip():
            raise AuthConfigError("API key is required")

    def to_headers(self) -> dict[str, str]:
        self.check()
        headers: dict[str, str] = {}
        if self.type == AuthType.BEARER:
            headers["Authorization"] = f"Bearer {self.token}"
        elif self.type == AuthType.APIKEY:
            headers["X-API-Key"] = self.api_key
            headers["Authorization"] = f"ApiKey {self.api_key}"
        headers.update(self.headers)
        return headers


class CredentialAuth(httpx.Auth):
    """httpx auth hook that stamps credential headers onto every request."""

    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials
        self._headers = credentials.to_headers()

    def auth_flow(
        self, request: httpx.Request,
    ) -> Generator[httpx.Request, httpx.Response, None]:
        for key, value in self._headers.items():
            request.headers[key] = value
        yield request
