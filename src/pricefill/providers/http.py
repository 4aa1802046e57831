"""Async JSON HTTP client shared by the REST-based providers.

Wraps a lazily created aiohttp.ClientSession. HTTP 429 responses are retried
with the configured backoff sequence; every other failure (non-2xx status,
connection error, timeout, body that is not JSON) raises ProviderError
immediately so the calling adapter can fall through to the next provider.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import aiohttp

from pricefill.exceptions import ProviderError
from pricefill.logging import get_logger

logger = get_logger(__name__)

_HTTP_TOO_MANY_REQUESTS = 429


class JsonHttpClient:
    """GET-only JSON client with 429 backoff.

    Args:
        timeout: Total per-request timeout in seconds.
        backoff_seconds: Delays applied after successive 429 responses.
        max_retries: Maximum number of attempts per request.
        headers: Extra headers sent with every request.
        sleep: Coroutine used for backoff delays (injectable for tests).
    """

    def __init__(
        self,
        timeout: float = 10.0,
        backoff_seconds: Sequence[float] = (5.0, 10.0, 20.0),
        max_retries: int = 3,
        headers: dict[str, str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._backoff = list(backoff_seconds)
        self._max_retries = max(max_retries, 1)
        self._headers = {"Accept": "application/json", "User-Agent": "pricefill/1.0"}
        if headers:
            self._headers.update(headers)
        self._sleep = sleep
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout, headers=self._headers
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying session if one was opened."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _backoff_delay(self, attempt: int) -> float:
        if not self._backoff:
            return 5.0
        return self._backoff[min(attempt, len(self._backoff) - 1)]

    async def _request(self, url: str, params: dict[str, Any] | None) -> tuple[int, str]:
        """Perform one GET and return (status, body text)."""
        session = await self._get_session()
        try:
            async with session.get(url, params=params) as resp:
                return resp.status, await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderError(f"GET {url} failed: {e!r}") from e

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET url and decode the JSON body.

        Raises:
            ProviderError: on transport failure, non-2xx status, exhausted
                429 retries, or a body that is not valid JSON.
        """
        for attempt in range(self._max_retries):
            logger.debug("http_get", url=url, params=params, attempt=attempt + 1)
            status, body = await self._request(url, params)

            if status == _HTTP_TOO_MANY_REQUESTS:
                if attempt == self._max_retries - 1:
                    break
                delay = self._backoff_delay(attempt)
                logger.warning(
                    "http_rate_limited",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    delay=delay,
                )
                await self._sleep(delay)
                continue

            if not 200 <= status < 300:
                logger.info("http_error_status", url=url, status=status)
                raise ProviderError(f"GET {url} returned HTTP {status}")

            try:
                return json.loads(body)
            except ValueError as e:
                raise ProviderError(f"GET {url} returned malformed JSON") from e

        logger.warning("http_rate_limit_exhausted", url=url, attempts=self._max_retries)
        raise ProviderError(f"GET {url} still rate limited after {self._max_retries} attempts")
