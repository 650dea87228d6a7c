"""Shared utilities for retrieving external API responses."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

DEFAULT_TIMEOUT_SECONDS = 30.0


Headers = Mapping[str, str] | None
Params = Mapping[str, Any] | None


async def _request(
    url: str,
    *,
    headers: Headers,
    params: Params,
    method: str,
    timeout: float,
) -> httpx.Response:
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.request(
            method.upper(),
            url,
            headers=headers,
            params=params,
        )

    response.raise_for_status()
    return response


async def fetch_json(
    url: str,
    *,
    headers: Headers = None,
    params: Params = None,
    method: str = "GET",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """Execute an HTTP request and return the decoded JSON payload.

    The request is attempted once with a hard timeout; callers treat any
    exception as a failed cycle and wait for the next scheduled run.
    """

    response = await _request(
        url, headers=headers, params=params, method=method, timeout=timeout
    )
    return response.json()


async def fetch_text(
    url: str,
    *,
    headers: Headers = None,
    params: Params = None,
    method: str = "GET",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Execute an HTTP request and return the raw body as text.

    Used for providers whose declared content type cannot be trusted.
    """

    response = await _request(
        url, headers=headers, params=params, method=method, timeout=timeout
    )
    return response.text


__all__ = ["fetch_json", "fetch_text", "DEFAULT_TIMEOUT_SECONDS"]
