"""Streaming client for a substreams-style block-data provider.

This module provides:
- `SubstreamsEndpoint`: one authenticated HTTP/2 session that serves
  windowed stream requests as newline-delimited JSON messages.

The client never retries. Handshake or authentication failures surface as
`EndpointConnectionError` and leave no open connection behind.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from sfind.core.constants import DEFAULT_TIMEOUT_S
from sfind.core.errors import DecodeError, EndpointConnectionError
from sfind.core.models import StreamRequest

logger = logging.getLogger(__name__)

INFO_PATH = "/v1/info"
STREAM_PATH = "/v1/stream"


def auth_headers(token: str | None) -> dict[str, str]:
    """Bearer header when a token is configured, nothing otherwise."""
    return {"Authorization": f"Bearer {token}"} if token else {}


class SubstreamsEndpoint:
    """Single streaming session with the provider.

    Parameters
    ----------
    url : str
        Provider base URL.
    token : str | None
        Optional bearer token; None means an unauthenticated session.
    timeout_s : int
        Connect/write timeout in seconds. Reads wait indefinitely since the
        provider may idle between blocks.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (tests).
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.authenticated = token is not None
        self.client = httpx.AsyncClient(
            base_url=self.url,
            headers=auth_headers(token),
            timeout=httpx.Timeout(connect=timeout_s, read=None, write=timeout_s, pool=timeout_s),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=1),
            http2=True,
            transport=transport,
        )

    @classmethod
    async def connect(
        cls,
        url: str,
        token: str | None = None,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SubstreamsEndpoint:
        """Open a session and verify it with a handshake request."""
        endpoint = cls(url, token, timeout_s=timeout_s, transport=transport)
        try:
            await endpoint.handshake()
        except BaseException:
            await endpoint.aclose()
            raise
        return endpoint

    async def handshake(self) -> dict[str, Any]:
        try:
            r = await self.client.get(INFO_PATH)
        except httpx.HTTPError as exc:
            raise EndpointConnectionError(f"cannot reach {self.url}: {exc}") from exc
        if r.status_code in (401, 403):
            raise EndpointConnectionError(f"authentication rejected by {self.url} (HTTP {r.status_code})")
        if r.is_error:
            raise EndpointConnectionError(f"handshake with {self.url} failed (HTTP {r.status_code})")
        try:
            info = r.json()
        except ValueError:
            info = {}
        logger.info("Connected to %s (authenticated=%s)", self.url, self.authenticated)
        return info if isinstance(info, dict) else {}

    async def open_stream(self, request: StreamRequest) -> AsyncIterator[dict[str, Any]]:
        """Yield the raw JSON messages served for one window request."""
        logger.debug("Opening stream for window [%d, %d)", request.window.start, request.window.end)
        try:
            async with self.client.stream("POST", STREAM_PATH, json=request.to_payload()) as r:
                if r.is_error:
                    await r.aread()
                    raise EndpointConnectionError(
                        f"stream request rejected by {self.url} (HTTP {r.status_code}): {r.text[:200]}"
                    )
                async for line in r.aiter_lines():
                    if not line.strip():
                        continue
                    yield _parse_line(line)
        except httpx.HTTPError as exc:
            raise EndpointConnectionError(f"stream from {self.url} failed: {exc}") from exc

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> SubstreamsEndpoint:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _parse_line(line: str) -> dict[str, Any]:
    try:
        msg = json.loads(line)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"stream message is not valid JSON: {line[:120]!r}") from exc
    if not isinstance(msg, dict):
        raise DecodeError(f"stream message is not a JSON object: {line[:120]!r}")
    return msg
