#!/usr/bin/env python3
"""
Retry Decorator with Tenacity

Retry logic for idempotent relay reads (fee recommendations, block stats):
- Exponential backoff
- Retries transport failures and 5xx answers, never 4xx
- Structured logging before each sleep

Broadcasting is deliberately not wrapped: a resubmitted transaction is the
caller's decision.
"""

import logging

import httpx
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (httpx.TransportError, ConnectionError, TimeoutError)


def is_retryable_http_error(exc: BaseException) -> bool:
    """
    Decide whether a failed HTTP call is worth another attempt

    Args:
        exc: Exception raised by the wrapped call

    Returns:
        True for transport errors, timeouts and 5xx responses
    """
    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def retry_http(
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5.0,
):
    """
    Retry decorator for idempotent HTTP/API operations (httpx)

    Retries on:
    - httpx.TransportError (connect errors, read timeouts)
    - ConnectionError / TimeoutError
    - httpx.HTTPStatusError with a 5xx status

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum wait time in seconds (default: 0.5)
        max_wait: Maximum wait time in seconds (default: 5.0)

    Returns:
        Decorated function with retry logic

    Example:
        @retry_http(max_attempts=3)
        async def fetch_fees(client):
            response = await client.get("/v1/fees/precise")
            response.raise_for_status()
            return response.json()
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception(is_retryable_http_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        after=after_log(logger, logging.DEBUG),
        reraise=True,
    )
