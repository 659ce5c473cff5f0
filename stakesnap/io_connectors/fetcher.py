from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional

import requests
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..config_schema import RateLimitConfig, RetryConfig
from ..errors import FetchError, FetchExhausted, TransientFetchError
from .ratelimit import TokenBucket


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a Retry-After header given as seconds or as an HTTP date."""

    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


@dataclass
class FetchResult:
    """Payload plus retry bookkeeping for one fetch."""

    data: Any
    attempts: int
    delays: List[float] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def retries(self) -> int:
        return self.attempts - 1


class RateLimitedFetcher:
    """HTTP GET with a shared token bucket and capped exponential backoff.

    Safe to call from several worker threads at once: the bucket is the only
    shared mutable state, and each call builds its own retry controller.
    """

    def __init__(
        self,
        rate_limit: Optional[RateLimitConfig] = None,
        retry: Optional[RetryConfig] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        limiter: Optional[TokenBucket] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate_limit = rate_limit or RateLimitConfig()
        self.retry_cfg = retry or RetryConfig()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.limiter = limiter or TokenBucket(
            self.rate_limit.requests_per_interval,
            self.rate_limit.interval_seconds,
            clock=clock,
            sleep=sleep,
        )
        self._sleep = sleep
        self._clock = clock
        self._backoff = wait_exponential(
            multiplier=self.retry_cfg.base_delay_seconds,
            max=self.retry_cfg.max_delay_seconds,
        )
        self._jitter = wait_random(0, self.retry_cfg.jitter_seconds)
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def concurrency(self) -> int:
        return self.limiter.capacity

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = self._backoff(retry_state)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if (
            self.retry_cfg.respect_retry_after
            and isinstance(exc, TransientFetchError)
            and exc.retry_after is not None
        ):
            delay = max(delay, exc.retry_after)
        return delay + self._jitter(retry_state)

    def _get_once(self, url: str, params: Optional[Dict[str, Any]]) -> Any:
        self.limiter.acquire()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientFetchError(url, None, str(e)) from e

        status = resp.status_code
        reason = getattr(resp, "reason", "") or ""
        if status == 429 or status >= 500:
            raise TransientFetchError(
                url,
                status,
                reason or "transient upstream error",
                retry_after=parse_retry_after(resp.headers.get("Retry-After")),
            )
        if status >= 400:
            raise FetchError(url, status, reason or "request rejected")
        try:
            return resp.json()
        except ValueError as e:
            raise TransientFetchError(url, status, f"invalid JSON body: {e}") from e

    def fetch_with_stats(self, url: str, params: Optional[Dict[str, Any]] = None) -> FetchResult:
        """Fetch JSON, retrying transient failures.

        Raises:
            FetchExhausted: every attempt failed transiently.
            FetchError: non-retryable HTTP status.
        """

        delays: List[float] = []

        def _sleep(seconds: float) -> None:
            delays.append(seconds)
            self._sleep(seconds)

        retrying = Retrying(
            stop=stop_after_attempt(self.retry_cfg.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientFetchError),
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            sleep=_sleep,
        )
        started = self._clock()
        attempts = 0
        try:
            for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    data = self._get_once(url, params)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            status = getattr(last, "status", None)
            message = getattr(last, "message", str(last))
            self.logger.error("Giving up on %s after %d attempts: %s", url, attempts, message)
            raise FetchExhausted(url, status, message, attempts) from last

        return FetchResult(data=data, attempts=attempts, delays=delays, elapsed=self._clock() - started)

    def fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Return the decoded JSON body for url."""

        return self.fetch_with_stats(url, params).data
