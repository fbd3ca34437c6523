"""
HTTP utilities for the map pipeline.

Provides HTTP fetching with configurable retry, rate limiting awareness,
and proper error handling.
"""

from typing import Optional

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pipeline.config import settings


# Default headers for requests
DEFAULT_HEADERS = {
    "User-Agent": "WorldHeritageMap/1.0 (UNESCO site explorer)",
    "Accept": "application/json, */*",
}

TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError)


class HTTPError(Exception):
    """Custom HTTP error with status code."""

    def __init__(self, message: str, status_code: int = None, response: httpx.Response = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class RateLimitError(HTTPError):
    """Raised when rate limited by a data source."""
    pass


def _check_response(response: httpx.Response, url: str) -> httpx.Response:
    """Raise HTTPError/RateLimitError for unsuccessful responses."""
    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After", "60")
        raise RateLimitError(
            f"Rate limited by {url}. Retry after {retry_after}s",
            status_code=429,
            response=response,
        )

    if response.status_code >= 400:
        raise HTTPError(
            f"HTTP {response.status_code} for {url}: {response.text[:200]}",
            status_code=response.status_code,
            response=response,
        )

    logger.debug(f"Fetched {url} ({response.status_code}, {len(response.content)} bytes)")
    return response


async def afetch(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    headers: Optional[dict] = None,
    params: Optional[dict] = None,
    json_data: Optional[dict] = None,
    max_attempts: Optional[int] = None,
) -> httpx.Response:
    """
    Fetch URL with a caller-owned client, retrying transient failures up to
    the configured attempt count.

    Raises:
        HTTPError: For HTTP errors (4xx, 5xx)
        RateLimitError: When rate limited (429)
        httpx.TimeoutException: On timeout after retries
    """
    request_headers = {**DEFAULT_HEADERS, **(headers or {})}
    attempts = max_attempts or settings.pipeline.http_max_retries

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=settings.pipeline.http_retry_delay, min=1, max=60),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    ):
        with attempt:
            logger.debug(f"Fetching {method} {url}")
            response = await client.request(
                method=method,
                url=url,
                headers=request_headers,
                params=params,
                json=json_data,
            )

    return _check_response(response, url)
