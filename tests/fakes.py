"""Test doubles shared by the test modules."""
from __future__ import annotations

import datetime as _dt
from collections import deque
from typing import Dict, List, Optional

from discord_export.models import FetchOutcome, OutcomeKind
from discord_export.storage import CsvAppendStorage

BASE_TIME = _dt.datetime(2024, 1, 1, tzinfo=_dt.timezone.utc)
BASE_ID = 1_200_000_000_000_000_000


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self, start: float = 1000.0) -> None:
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += max(seconds, 0.0)


def make_message(number: int, **extra) -> Dict:
    """Message #number; higher numbers are newer."""
    msg = {
        "id": str(BASE_ID + number),
        "channel_id": "555",
        "content": f"message {number}",
        "timestamp": (BASE_TIME + _dt.timedelta(minutes=number)).isoformat(),
        "author": {"id": "42", "username": "tester"},
    }
    msg.update(extra)
    return msg


def make_channel(count: int) -> List[Dict]:
    """Newest-first feed of ``count`` messages."""
    return [make_message(n) for n in range(count, 0, -1)]


def ok(data, status_code: int = 200) -> FetchOutcome:
    return FetchOutcome(kind=OutcomeKind.OK, status_code=status_code, data=data)


def rate_limited(retry_after: Optional[float] = None) -> FetchOutcome:
    return FetchOutcome(kind=OutcomeKind.RATE_LIMITED, status_code=429, retry_after=retry_after, error="rate limited")


def failed(kind: OutcomeKind, status_code: int) -> FetchOutcome:
    return FetchOutcome(kind=kind, status_code=status_code, error=f"http_{status_code}")


class FakeClient:
    """In-memory stand-in for DiscordClient serving a fixed feed."""

    def __init__(
        self,
        feed: List[Dict],
        user_outcome: Optional[FetchOutcome] = None,
        access_outcome: Optional[FetchOutcome] = None,
        guild_outcome: Optional[FetchOutcome] = None,
        channel_outcome: Optional[FetchOutcome] = None,
        page_outcomes: Optional[Dict[int, List[FetchOutcome]]] = None,
    ) -> None:
        self.feed = feed
        self.user_outcome = user_outcome or ok({"id": "42", "username": "tester"})
        self.access_outcome = access_outcome
        self.guild_outcome = guild_outcome or ok({"id": "777", "name": "Test Server"})
        self.channel_outcome = channel_outcome or ok({"id": "555", "name": "general, \"main\""})
        # page number (1-based) -> outcomes returned before that page is served
        self.page_outcomes = {k: deque(v) for k, v in (page_outcomes or {}).items()}
        # ``before`` of every page actually served, in request order
        self.page_calls: List[Optional[str]] = []
        self.page_sizes: List[int] = []
        self.requests = 0
        self.access_checks = 0

    def get_current_user(self) -> FetchOutcome:
        return self.user_outcome

    def get_guild(self, guild_id: str) -> FetchOutcome:
        return self.guild_outcome

    def get_channel(self, channel_id: str) -> FetchOutcome:
        return self.channel_outcome

    def get_messages(self, channel_id: str, limit: int = 100, before: Optional[str] = None) -> FetchOutcome:
        if limit == 1 and before is None:
            self.access_checks += 1
            if self.access_outcome is not None:
                return self.access_outcome
            return ok(self.feed[:1])

        self.requests += 1
        queued = self.page_outcomes.get(len(self.page_calls) + 1)
        if queued:
            return queued.popleft()

        self.page_calls.append(before)
        older = [m for m in self.feed if before is None or int(m["id"]) < int(before)]
        page = older[:limit]
        self.page_sizes.append(len(page))
        return ok(page)


def failing_write(fail_on_call: int):
    """A CsvAppendStorage._write replacement that raises OSError on one call."""
    original = CsvAppendStorage._write
    calls = []

    def write(path: str, text: str) -> None:
        calls.append(path)
        if len(calls) == fail_on_call:
            raise OSError("No space left on device")
        original(path, text)

    return write
