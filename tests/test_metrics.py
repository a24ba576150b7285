"""Tests for the MetricsCollector class."""

import unittest

from discord_export.metrics import MetricsCollector
from discord_export.models import FetchOutcome, OutcomeKind


def _make_outcome(**overrides) -> FetchOutcome:
    """Helper to build a FetchOutcome with sensible defaults."""
    defaults = dict(kind=OutcomeKind.OK, status_code=200, data=[{"id": "1"}], latency_ms=100)
    defaults.update(overrides)
    return FetchOutcome(**defaults)


class TestMetricsCollector(unittest.TestCase):
    """Verify outcome recording and snapshot aggregation."""

    def test_empty_snapshot(self):
        metrics = MetricsCollector()
        snap = metrics.snapshot(window_secs=30)
        self.assertEqual(snap.total_requests, 0)
        self.assertEqual(snap.success_count, 0)
        self.assertEqual(snap.avg_latency_ms, 0.0)

    def test_records_success(self):
        metrics = MetricsCollector()
        metrics.record_outcome(_make_outcome())
        metrics.record_outcome(_make_outcome())
        snap = metrics.snapshot(window_secs=30)
        self.assertEqual(snap.total_requests, 2)
        self.assertEqual(snap.success_count, 2)
        self.assertEqual(snap.error_count, 0)

    def test_records_errors(self):
        metrics = MetricsCollector()
        metrics.record_outcome(_make_outcome(kind=OutcomeKind.RATE_LIMITED, status_code=429))
        metrics.record_outcome(_make_outcome(kind=OutcomeKind.FORBIDDEN, status_code=403))
        metrics.record_outcome(_make_outcome(kind=OutcomeKind.HTTP_ERROR, status_code=500))
        snap = metrics.snapshot(window_secs=30)
        self.assertEqual(snap.total_requests, 3)
        self.assertEqual(snap.http_429_count, 1)
        self.assertEqual(snap.http_403_count, 1)
        self.assertEqual(snap.error_count, 3)

    def test_average_latency(self):
        metrics = MetricsCollector()
        metrics.record_outcome(_make_outcome(latency_ms=100))
        metrics.record_outcome(_make_outcome(latency_ms=300))
        self.assertEqual(metrics.snapshot(window_secs=30).avg_latency_ms, 200.0)

    def test_export_json_drops_payloads(self):
        metrics = MetricsCollector()
        metrics.record_outcome(_make_outcome())
        rows = metrics.export_json()
        self.assertEqual(len(rows), 1)
        self.assertNotIn("data", rows[0])
        self.assertEqual(rows[0]["kind"], "ok")
        self.assertIn("timestamp", rows[0])

    def test_bounded_history(self):
        metrics = MetricsCollector(maxlen=5)
        for _ in range(8):
            metrics.record_outcome(_make_outcome())
        self.assertEqual(metrics.snapshot(window_secs=30).total_requests, 5)


if __name__ == "__main__":
    unittest.main()
