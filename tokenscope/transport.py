"""Async HTTP helpers shared by the upstream adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx


_LOGGER = logging.getLogger("tokenscope.transport")

T = TypeVar("T")

NO_RETRY_STATUS = {400, 401}


async def get_json(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Any] = None,
    timeout: float = 30.0,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """GET ``url`` and decode JSON. HTTP error statuses raise ``httpx.HTTPStatusError``."""

    if client is not None:
        response = await client.get(url, headers=headers, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    async with httpx.AsyncClient(timeout=timeout) as session:
        response = await session.get(url, headers=headers, params=params)
        response.raise_for_status()
        return response.json()


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    initial_delay: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` with exponential backoff (0.5s, 1s, ...).

    Client errors 400/401 are re-raised at once.
    """

    retries = 0
    while True:
        try:
            return await fn()
        except httpx.HTTPError as exc:
            status = None
            if isinstance(exc, httpx.HTTPStatusError):
                status = exc.response.status_code
            if retries >= max_retries or status in NO_RETRY_STATUS:
                raise
            delay = initial_delay * (2**retries)
            retries += 1
            _LOGGER.info("retry wait=%.2fs attempt=%s/%s status=%s", delay, retries, max_retries, status)
            await sleep(delay)
