"""Tenacity retry policy for metadata fetches.

Retries transient transport failures and 429/5xx responses with full-jitter
exponential backoff, honouring ``Retry-After`` when the server sends one.
"""

from __future__ import annotations

import email.utils
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def _parse_retry_after_value(value: Optional[str]) -> Optional[float]:
    """Convert a Retry-After header value into a delay in seconds."""
    if not value:
        return None

    try:
        delay = float(int(value))
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        delay = (dt - datetime.now(timezone.utc)).total_seconds()

    return max(0.0, delay)


class _RetryAfterOrBackoff(wait_base):
    """Wait strategy that honours Retry-After before falling back to backoff."""

    def __init__(self, fallback_wait: wait_base, max_delay_seconds: float) -> None:
        self._fallback_wait = fallback_wait
        self._max_delay_seconds = max_delay_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            response = outcome.result()
            headers = getattr(response, "headers", None)
            if headers is not None:
                delay = _parse_retry_after_value(headers.get("Retry-After"))
                if delay is not None:
                    return min(delay, self._max_delay_seconds)
        return float(self._fallback_wait(retry_state))


def _retryable_response(response: object) -> bool:
    return getattr(response, "status_code", None) in RETRYABLE_STATUS_CODES


def create_http_retry_policy(
    max_attempts: int = 4,
    max_delay_seconds: float = 30.0,
    backoff_max: float = 5.0,
) -> Retrying:
    """Create a Tenacity retry policy for HTTP GETs.

    Call the policy with the request function so result-based retries apply::

        response = policy(client.get, url)

    When the last attempt still returns a retryable response, Tenacity raises
    :class:`tenacity.RetryError`; callers read the final response from
    ``exc.last_attempt``.
    """

    wait_strategy = _RetryAfterOrBackoff(
        fallback_wait=wait_random_exponential(multiplier=0.25, max=backoff_max),
        max_delay_seconds=max_delay_seconds,
    )

    return Retrying(
        stop=stop_after_attempt(max_attempts) | stop_after_delay(max_delay_seconds),
        wait=wait_strategy,
        retry=(
            retry_if_exception_type(
                (
                    httpx.ConnectError,
                    httpx.ConnectTimeout,
                    httpx.ReadTimeout,
                    httpx.RemoteProtocolError,
                )
            )
            | retry_if_result(_retryable_response)
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
