from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict
from threading import Lock
from typing import Deque, Dict, List

from .models import FetchOutcome, MetricsSnapshot


class MetricsCollector:
    """Thread-safe collector for request outcomes.

    Records one FetchOutcome per attempted API call and produces aggregated
    MetricsSnapshot objects over configurable sliding time windows."""

    def __init__(self, maxlen: int = 10000) -> None:
        self._lock = Lock()
        self._events: Deque[tuple[float, FetchOutcome]] = deque(maxlen=maxlen)

    def record_outcome(self, outcome: FetchOutcome) -> None:
        """Record a request outcome with the current timestamp."""
        with self._lock:
            self._events.append((time.time(), outcome))

    def snapshot(self, window_secs: int) -> MetricsSnapshot:
        """Return aggregated metrics for events within the last window_secs seconds."""
        now = time.time()
        cutoff = now - window_secs
        with self._lock:
            events: List[FetchOutcome] = [e for ts, e in self._events if ts >= cutoff]
        total = len(events)
        success_count = sum(1 for e in events if e.ok)
        http_429_count = sum(1 for e in events if e.status_code == 429)
        http_403_count = sum(1 for e in events if e.status_code == 403)
        avg_latency_ms = (sum(e.latency_ms for e in events) / total) if total else 0.0

        return MetricsSnapshot(
            window_secs=window_secs,
            total_requests=total,
            success_count=success_count,
            http_429_count=http_429_count,
            http_403_count=http_403_count,
            error_count=total - success_count,
            avg_latency_ms=avg_latency_ms,
            timestamp=now,
        )

    def export_json(self) -> List[Dict]:
        """Export all recorded outcomes (without payloads) as dictionaries."""
        with self._lock:
            rows = []
            for ts, e in self._events:
                row = asdict(e)
                row.pop("data", None)
                row["kind"] = e.kind.value
                rows.append({"timestamp": ts, **row})
            return rows
