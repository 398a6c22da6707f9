"""Async HTTP client with retry and exponential backoff.

Kalshi's public API rate-limits aggressively, so 429s are retried along
with 5xx responses and timeouts. Attempts and backoff come from settings.
"""

from __future__ import annotations

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from kalshi_paper.config import get_settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def _is_retryable(exc: BaseException) -> bool:
    """Retry on rate limits, transient server errors and timeouts."""
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


class HttpClient:
    """Async HTTP client; every request goes through the retry policy.

    Args:
        base_url: Prefix for relative request URLs
        headers: Default request headers
        max_attempts: Total tries per request (default: settings.http_max_attempts)
        backoff_initial: First backoff in seconds, doubled per retry
            (default: settings.http_backoff_initial)
        backoff_max: Upper bound on a single backoff (default: settings.http_backoff_max)
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        max_attempts: int | None = None,
        backoff_initial: float | None = None,
        backoff_max: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._max_attempts = max_attempts if max_attempts is not None else settings.http_max_attempts
        self._backoff_initial = (
            backoff_initial if backoff_initial is not None else settings.http_backoff_initial
        )
        self._backoff_max = backoff_max if backoff_max is not None else settings.http_backoff_max
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=httpx.Timeout(settings.http_timeout),
            transport=transport,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_initial, max=self._backoff_max),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _request(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        async for attempt in self._retrying():
            with attempt:
                resp = await self._client.request(method, url, **kwargs)
                resp.raise_for_status()
        return resp

    async def get(self, url: str, params: dict | None = None) -> httpx.Response:
        return await self._request("GET", url, params=params)

    async def post(self, url: str, json: dict | None = None) -> httpx.Response:
        return await self._request("POST", url, json=json)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
