"""Tests for timestamp parsing and range checks."""

import datetime as _dt
import unittest

from discord_export.dates import in_range, parse_range, parse_timestamp

UTC = _dt.timezone.utc


class TestParseTimestamp(unittest.TestCase):
    def test_empty_values(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp(""))

    def test_plain_date_is_midnight_utc(self):
        self.assertEqual(parse_timestamp("2024-05-01"), _dt.datetime(2024, 5, 1, tzinfo=UTC))

    def test_zulu_suffix(self):
        self.assertEqual(
            parse_timestamp("2026-01-28T10:00:00Z"),
            _dt.datetime(2026, 1, 28, 10, 0, tzinfo=UTC),
        )

    def test_offset_is_normalised(self):
        self.assertEqual(
            parse_timestamp("2024-01-01T02:00:00+02:00"),
            _dt.datetime(2024, 1, 1, 0, 0, tzinfo=UTC),
        )

    def test_api_timestamp_with_microseconds(self):
        parsed = parse_timestamp("2024-01-01T00:05:00.123000+00:00")
        self.assertEqual(parsed.microsecond, 123000)

    def test_fraction_of_any_length(self):
        cases = {
            "2024-01-01T00:05:00.1+00:00": 100000,
            "2024-01-01T00:05:00.12345Z": 123450,
            "2024-01-01T00:05:00.123456789+00:00": 123456,
        }
        for text, micro in cases.items():
            parsed = parse_timestamp(text)
            self.assertEqual(parsed.microsecond, micro, text)
            self.assertEqual(parsed.minute, 5)

    def test_naive_datetime_treated_as_utc(self):
        self.assertEqual(parse_timestamp(_dt.datetime(2024, 1, 1)), _dt.datetime(2024, 1, 1, tzinfo=UTC))

    def test_invalid_values(self):
        for value in ("yesterday", "01/02/2024", "2024-13-45"):
            with self.assertRaises(ValueError):
                parse_timestamp(value)


class TestRange(unittest.TestCase):
    def test_start_after_end(self):
        with self.assertRaises(ValueError) as ctx:
            parse_range("2024-02-01", "2024-01-01")
        self.assertEqual(str(ctx.exception), "Start timestamp cannot be after end timestamp")

    def test_open_ended_range(self):
        start, end = parse_range("2024-01-01", None)
        self.assertIsNotNone(start)
        self.assertIsNone(end)

    def test_bounds_are_inclusive(self):
        start, end = parse_range("2024-01-01", "2024-01-02")
        self.assertTrue(in_range(start, start, end))
        self.assertTrue(in_range(end, start, end))
        self.assertFalse(in_range(end + _dt.timedelta(seconds=1), start, end))
        self.assertFalse(in_range(start - _dt.timedelta(seconds=1), start, end))
        self.assertTrue(in_range(start, None, None))


if __name__ == "__main__":
    unittest.main()
