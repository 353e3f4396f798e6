"""
Shared HTTP client factory.

Provides a pre-configured ``httpx.AsyncClient`` with a default timeout and
the project User-Agent. No retry transport is mounted: every call made
through it is exactly one request, and timeouts surface as
``httpx.TimeoutException`` for the caller to classify.

Usage::

    from drivetime_planner.services.http import create_client

    async with create_client() as client:
        resp = await client.get("https://api.example.com/v1/data")
        resp.raise_for_status()
"""

from __future__ import annotations

import httpx

from drivetime_planner import __version__

DEFAULT_TIMEOUT = 30  # seconds

USER_AGENT = f"drivetime-planner/{__version__}"


def create_client(
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Build an ``httpx.AsyncClient`` for the routing and portal services.

    Args:
        timeout: Default timeout applied to every request.
        transport: Custom transport (tests pass ``httpx.MockTransport``).
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    )
