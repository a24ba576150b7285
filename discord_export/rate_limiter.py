from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Optional

from .backoff import BackoffStrategy
from .constants import MAX_RETRIES, RATE_WINDOW_SECONDS, REQUESTS_PER_SECOND
from .context import RunContext
from .errors import TransientRateLimit
from .metrics import MetricsCollector
from .models import FetchOutcome, RateStatus

LOGGER = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe sliding-window rate limiter with rate-limit retries.

    Keeps the timestamps of the requests issued in the trailing window. When the
    window already holds ``max_requests`` timestamps, admit() sleeps until the
    oldest one leaves the window. Clock and sleep are injectable so callers can
    route suspensions through a cancel token."""

    def __init__(
        self,
        max_requests: int = REQUESTS_PER_SECOND,
        window_seconds: float = RATE_WINDOW_SECONDS,
        backoff: Optional[BackoffStrategy] = None,
        max_retries: int = MAX_RETRIES,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._max_requests = max(1, int(max_requests))
        self._window = window_seconds
        self._backoff = backoff or BackoffStrategy()
        self._max_retries = max(1, int(max_retries))
        self._metrics = metrics
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._timestamps: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        cutoff = now - self._window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def admit(self) -> float:
        """Block until a request slot is free, reserve it, return seconds waited."""
        waited = 0.0
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self._max_requests:
                wait = self._timestamps[0] + self._window - now
                if wait > 0:
                    LOGGER.debug("Rate limiting: waiting %.3fs", wait)
                    self._sleep(wait)
                    waited = wait
                now = self._clock()
                self._prune(now)
            self._timestamps.append(now)
        return waited

    def status(self) -> RateStatus:
        """Current window usage; read-only."""
        with self._lock:
            self._prune(self._clock())
            used = len(self._timestamps)
        return RateStatus(requests_in_window=used, available=max(0, self._max_requests - used))

    def execute_with_retry(
        self,
        operation: Callable[[], FetchOutcome],
        operation_name: str = "request",
        context: Optional[RunContext] = None,
    ) -> Any:
        """Run ``operation`` under the rate limit and return its data.

        Only rate-limited outcomes are retried. Any other failed outcome raises
        its mapped error right away, exceptions from ``operation`` propagate
        untouched, and running out of attempts raises TransientRateLimit."""
        last: Optional[FetchOutcome] = None
        for attempt in range(1, self._max_retries + 1):
            self.admit()
            outcome = operation()
            if self._metrics:
                self._metrics.record_outcome(outcome)

            if outcome.ok:
                return outcome.data
            if not outcome.rate_limited:
                outcome.raise_for_kind(operation_name)

            last = outcome
            if attempt < self._max_retries:
                delay = self._backoff.get_sleep(attempt, outcome.retry_after)
                if context is not None:
                    context.record(
                        "rate_limited",
                        level=logging.WARNING,
                        operation=operation_name,
                        attempt=attempt,
                        backoff_ms=int(delay * 1000),
                        retry_after=outcome.retry_after,
                    )
                else:
                    LOGGER.warning("Rate limited on %s. Retrying in %.2fs (attempt %d)",
                                   operation_name, delay, attempt)
                self._sleep(delay)

        raise TransientRateLimit(
            f"{operation_name} still rate limited after {self._max_retries} attempts",
            attempts=self._max_retries,
            retry_after=last.retry_after if last else None,
        )
