"""
HTTP Client Module

One pooled httpx.AsyncClient per process for calls to the progress store.

request_with_retry retries transport errors and 5xx answers with
exponential backoff. Progress updates pass max_retries=0 because the
observer's next save tick re-sends them anyway; enrollment and exam
reads keep the default.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx


logger = logging.getLogger(__name__)


# ============== Configuration ==============

MAX_CONNECTIONS = 20
MAX_KEEPALIVE_CONNECTIONS = 10
KEEPALIVE_EXPIRY = 30  # seconds

DEFAULT_TIMEOUT = 30.0  # seconds

MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 0.5  # seconds, doubled per attempt

RETRYABLE_ERRORS = (
    httpx.ConnectError,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.RemoteProtocolError,
)


# ============== Shared Client ==============

_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the process-wide client, creating it on first use."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            limits=httpx.Limits(
                max_connections=MAX_CONNECTIONS,
                max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
                keepalive_expiry=KEEPALIVE_EXPIRY,
            ),
            timeout=httpx.Timeout(DEFAULT_TIMEOUT),
            http2=True,
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared client. Called on application shutdown."""
    global _http_client
    if _http_client is None:
        return
    await _http_client.aclose()
    _http_client = None


# ============== Requests ==============

def _backoff(attempt: int) -> float:
    return RETRY_BACKOFF_BASE * (2 ** attempt)


async def request_with_retry(
    method: str,
    url: str,
    max_retries: int = MAX_RETRIES,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request through the shared client.

    Args:
        method: HTTP method.
        url: Absolute URL.
        max_retries: Extra attempts after the first one; 0 sends once.
        **kwargs: Passed to httpx.AsyncClient.request (json, headers, ...).

    Returns:
        httpx.Response: The first non-5xx response, or the last 5xx one
        when retries run out.

    Raises:
        httpx.HTTPError: When the last attempt fails at the transport level.
    """
    client = get_http_client()

    for attempt in range(max_retries + 1):
        retries_left = attempt < max_retries
        try:
            response = await client.request(method, url, **kwargs)
        except RETRYABLE_ERRORS as e:
            if not retries_left:
                raise
            logger.warning(f"[HTTP] {method} {url} failed ({e}), retry {attempt + 1}/{max_retries}")
            await asyncio.sleep(_backoff(attempt))
            continue

        if response.status_code >= 500 and retries_left:
            logger.warning(
                f"[HTTP] {method} {url} returned {response.status_code}, retry {attempt + 1}/{max_retries}"
            )
            await asyncio.sleep(_backoff(attempt))
            continue
        return response

    raise httpx.HTTPError(f"{method} {url}: no attempt made")
