"""Timestamp parsing for the optional time-range filter.

Accepted forms are ISO-8601 (a trailing ``Z`` is allowed) and a plain
``YYYY-MM-DD`` date. Values without an offset are taken as UTC. A plain date is
that day's midnight, also when used as the inclusive upper bound, so an end of
``2024-05-01`` keeps nothing after ``2024-05-01T00:00:00Z``.
"""
from __future__ import annotations

import datetime as _dt
import re
from typing import Optional, Union

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")
_FRACTION = re.compile(r"(:\d{2})\.(\d+)")

TimestampInput = Union[str, _dt.datetime, None]


def parse_timestamp(value: TimestampInput) -> Optional[_dt.datetime]:
    """Parse a caller or API timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, _dt.datetime):
        parsed = value
    else:
        text = value.strip()
        if not (_DATE_ONLY.match(text) or _ISO_PREFIX.match(text)):
            raise ValueError(
                f"Invalid timestamp {value!r}. Use ISO 8601 (2026-01-28T10:00:00Z) or date (2026-01-28)"
            )
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text, count=1)
        try:
            parsed = _dt.datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Timestamp is not a valid date: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)
    return parsed.astimezone(_dt.timezone.utc)


def parse_range(start: TimestampInput, end: TimestampInput) -> tuple[Optional[_dt.datetime], Optional[_dt.datetime]]:
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    if start_dt and end_dt and start_dt > end_dt:
        raise ValueError("Start timestamp cannot be after end timestamp")
    return start_dt, end_dt


def in_range(moment: _dt.datetime, start: Optional[_dt.datetime], end: Optional[_dt.datetime]) -> bool:
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True
