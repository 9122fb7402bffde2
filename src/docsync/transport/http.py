"""
HTTP transport built on httpx.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from docsync.core.config import RemoteConfig
from docsync.core.errors import ProtocolError, TransportError, error_for_status
from docsync.core.logging import get_logger
from docsync.transport.base import JSON_REQUEST_OPTIONS, Response, Transport

logger = get_logger(__name__)


class HttpxTransport(Transport):
    """Talks JSON to the remote database over an httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config: RemoteConfig) -> HttpxTransport:
        return cls(
            config.base_url,
            token=config.auth_token,
            timeout=config.request_timeout_seconds,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/json",
                "Content-Type": JSON_REQUEST_OPTIONS["contentType"],
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def send(self, method: str, path: str, data: Any = None) -> Response:
        client = self._get_client()
        content = json.dumps(data) if data is not None else None

        logger.debug("Sending request", method=method, path=path)
        try:
            response = await client.request(method, path, content=content)
        except httpx.RequestError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            payload: Any = None
            message = response.reason_phrase
            try:
                payload = response.json()
            except ValueError:
                pass
            if isinstance(payload, dict):
                message = payload.get("reason") or payload.get("error") or message
            logger.debug(
                "Request failed",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise error_for_status(response.status_code, message, payload)

        if not response.content:
            return Response(response.status_code, None)
        try:
            body = response.json()
        except ValueError as e:
            raise ProtocolError(f"{method} {path} returned a non-JSON body") from e
        return Response(response.status_code, body)

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
