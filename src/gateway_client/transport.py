"""
HTTP transport: one request in, one response out.

The transport never retries; the batch executor owns retry policy.  The
blocking ``requests`` call is pushed onto a worker thread by
:func:`send_async` so concurrent tasks keep making progress.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field

import requests

from .config import REQUEST_TIMEOUT_SECONDS
from .errors import NetworkError


@dataclass(frozen=True)
class TransportResponse:
    """Status, headers, and undecoded body text of a gateway response."""

    status: int
    body_text: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def send(
    url: str,
    method: str = "POST",
    headers: Mapping[str, str] | None = None,
    body: str | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> TransportResponse:
    """
    Issue a single HTTP request.

    Args:
        url: Full endpoint URL.
        method: ``'POST'`` or ``'GET'``.
        headers: Request headers.
        body: Request body, already serialized.  GET requests may carry a
              body too (the payout-status endpoint expects one).
        timeout: Seconds before the request is abandoned.
        session: Optional ``requests.Session`` for connection reuse.

    Returns:
        :class:`TransportResponse`.  Non-2xx statuses are returned, not raised.

    Raises:
        NetworkError: Connection failure or timeout.
    """
    client = session or requests
    data = body.encode("utf-8") if body is not None else None
    try:
        response = client.request(
            method.upper(),
            url,
            headers=dict(headers or {}),
            data=data,
            timeout=timeout,
        )
    except requests.Timeout as exc:
        raise NetworkError(f"Request timed out after {timeout}s: {url}") from exc
    except requests.RequestException as exc:
        raise NetworkError(f"Request failed: {exc}") from exc

    return TransportResponse(
        status=response.status_code,
        body_text=response.text,
        headers=dict(response.headers),
    )


async def send_async(
    url: str,
    method: str = "POST",
    headers: Mapping[str, str] | None = None,
    body: str | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> TransportResponse:
    """Run :func:`send` on a worker thread."""
    return await asyncio.to_thread(send, url, method, headers, body, timeout, session)
