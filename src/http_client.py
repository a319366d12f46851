"""
Outbound HTTP for upstream park data sources.

A single GET with a per-call timeout, browser-like headers (several upstreams
answer non-browser user agents with 403/406) and a bounded number of retries
at a constant delay.
"""

import json
import logging
from typing import Any, Optional

import httpx

from src.resilience.retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 8.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_DELAY = 1.0

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class UpstreamError(Exception):
    """A source could not provide a usable response (retryable)."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{url}: {reason}")


def build_headers(overrides: Optional[dict] = None, kind: str = "json") -> dict:
    headers = dict(DEFAULT_HEADERS)
    if kind == "text":
        headers["Accept"] = HTML_ACCEPT
    if overrides:
        headers.update(overrides)
    return headers


async def _fetch_once(
    client: httpx.AsyncClient,
    url: str,
    headers: dict,
    timeout: float,
    kind: str,
) -> Any:
    try:
        response = await client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
    except httpx.TimeoutException as e:
        raise UpstreamError(url, f"timeout after {timeout}s") from e
    except httpx.HTTPError as e:
        raise UpstreamError(url, f"{type(e).__name__}: {e}") from e

    if response.status_code != 200:
        raise UpstreamError(url, f"HTTP {response.status_code}", response.status_code)

    body = response.text
    if not body or not body.strip():
        raise UpstreamError(url, "empty body", response.status_code)

    if kind == "text":
        return body

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise UpstreamError(url, f"malformed JSON: {e.msg}", response.status_code) from e


async def fetch_with_retry(
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    headers: Optional[dict] = None,
    timeout: Optional[float] = None,
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY,
    kind: str = "json",
) -> Any:
    """
    GET ``url`` and return its parsed JSON (``kind="json"``) or text (``kind="text"``).

    Args:
        url: Absolute URL
        client: Shared AsyncClient; a short-lived one is created when omitted
        headers: Header overrides merged over DEFAULT_HEADERS
        timeout: Per-attempt timeout in seconds
        retries: Additional attempts after the first
        delay: Constant delay between attempts

    Raises:
        UpstreamError: Once every attempt has failed.
    """
    merged = build_headers(headers, kind)
    timeout = timeout or DEFAULT_TIMEOUT
    config = RetryConfig.for_retries(retries, delay, retry_exceptions=(UpstreamError,))

    def _log_retry(attempt: int, exc: Exception, wait: float) -> None:
        logger.info(f"Retrying {url} ({attempt}/{retries}) in {wait:.1f}s: {exc}")

    if client is not None:
        return await retry_with_backoff(
            _fetch_once, client, url, merged, timeout, kind, config=config, on_retry=_log_retry
        )

    async with httpx.AsyncClient() as own_client:
        return await retry_with_backoff(
            _fetch_once, own_client, url, merged, timeout, kind, config=config, on_retry=_log_retry
        )
