from __future__ import annotations

import random
from typing import Optional

from .constants import MAX_RETRY_DELAY_SECONDS, RETRY_DELAY_SECONDS


class BackoffStrategy:
    """Exponential backoff for rate-limited retries.

    Computes sleep duration as base * 2^(attempt-1), capped at a configurable
    maximum, plus optional random jitter. A server supplied retry-after hint can
    lengthen the delay but never shorten it."""

    def __init__(
        self,
        base_seconds: float = RETRY_DELAY_SECONDS,
        max_seconds: float = MAX_RETRY_DELAY_SECONDS,
        jitter_ratio: float = 0.0,
    ) -> None:
        self._base = base_seconds
        self._max = max_seconds
        self._jitter_ratio = max(jitter_ratio, 0.0)

    def get_sleep(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Calculate the backoff sleep duration in seconds for a given retry attempt."""
        exp = min(self._max, self._base * (2 ** max(attempt - 1, 0)))
        if retry_after is not None and retry_after > exp:
            exp = min(self._max, retry_after)
        jitter = random.uniform(0, exp * self._jitter_ratio) if self._jitter_ratio else 0.0
        return exp + jitter
