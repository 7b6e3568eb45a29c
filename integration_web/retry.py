"""
Retry policy for outbound calls to the authorization server.
Retries network failures, 5xx and 429 up to a fixed budget. A Retry-After header
always wins over the computed exponential backoff.
"""
import logging
import math
import random
import time
from collections.abc import Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from integration_web.errors import (
    ExchangeError,
    ExchangeExhausted,
    RateLimited,
    TransportError,
    UpstreamRejected,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
# First retry waits ~0.2s, then ~0.4s, ~0.8s (plus up to 20% jitter)
DEFAULT_BACKOFF_BASE = 0.1


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """
    Seconds to wait from a Retry-After header (delta-seconds or HTTP-date).
    Returns None when the header is missing or unparseable.
    """
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def _response_detail(response: httpx.Response) -> str:
    """Short upstream error description: OAuth error fields if JSON, else a text prefix."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        desc = body.get("error_description") or body.get("error") or body.get("message")
        if desc:
            return f"HTTP {response.status_code}: {desc}"
    text = (response.text or "").strip()[:200]
    return f"HTTP {response.status_code}: {text}" if text else f"HTTP {response.status_code}"


def classify_response(response: httpx.Response) -> ExchangeError | None:
    """Map a non-2xx response to its error kind; None for success."""
    status = response.status_code
    if status < 400:
        return None
    detail = _response_detail(response)
    retry_after = parse_retry_after(response.headers.get("retry-after"))
    if status == 429:
        return RateLimited(detail, retry_after=retry_after)
    if status >= 500:
        return UpstreamUnavailable(detail, status=status, retry_after=retry_after)
    return UpstreamRejected(detail, status=status)


class RetryPolicy:
    """
    Bounded retries with rate-limit-aware backoff.
    send() returns the first successful response or raises an ExchangeError:
    UpstreamRejected immediately for non-429 4xx, ExchangeExhausted once the budget is spent.
    """

    def __init__(
        self,
        retries: int = DEFAULT_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retries = retries
        self.backoff_base = backoff_base
        self._sleep = sleep

    def exponential_delay(self, retry_number: int) -> float:
        delay = self.backoff_base * (2**retry_number)
        return delay + delay * 0.2 * random.random()

    def delay_for(self, retry_number: int, error: ExchangeError) -> float:
        if error.retry_after is not None:
            return error.retry_after
        return self.exponential_delay(retry_number)

    def send(self, request: Callable[[], httpx.Response]) -> httpx.Response:
        attempts = self.retries + 1
        last_error: ExchangeError | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = request()
            except httpx.TransportError as e:
                last_error = TransportError(f"{type(e).__name__}: {e}")
            else:
                error = classify_response(response)
                if error is None:
                    return response
                if isinstance(error, UpstreamRejected):
                    raise error
                last_error = error

            if attempt == attempts:
                break
            delay = self.delay_for(attempt, last_error)
            logger.warning(
                "Token endpoint attempt %d/%d failed (%s); retrying in %.2fs",
                attempt,
                attempts,
                last_error.detail,
                delay,
            )
            self._sleep(delay)

        raise ExchangeExhausted(attempts, last_error)
