"""Backward walk over a newest-first message feed.

The cursor always advances over the raw page before any filtering, so the time
range, the high-water stop and the message cap only decide what is kept; they
never change which page is requested next.
"""
from __future__ import annotations

import datetime as _dt
from dataclasses import replace
from typing import List, Optional, Tuple, Union

from .constants import PAGE_LIMIT
from .dates import in_range, parse_timestamp
from .errors import PaginationError
from .models import Message, Page, PageParams, PaginationState


def id_key(message_id: str) -> Tuple[int, Union[int, str]]:
    """Order key for message ids.

    Snowflakes compare numerically. Any other id sorts after every snowflake
    and compares as text, so mixed feeds never compare int with str.
    """
    text = str(message_id)
    return (0, int(text)) if text.isdigit() else (1, text)


class PaginationCursor:
    def __init__(
        self,
        max_messages: int = 0,
        start: Optional[_dt.datetime] = None,
        end: Optional[_dt.datetime] = None,
        stop_at_id: Optional[str] = None,
        page_limit: int = PAGE_LIMIT,
    ) -> None:
        self.max_messages = max(0, int(max_messages))
        self.start = start
        self.end = end
        self.stop_at_id = stop_at_id
        self.page_limit = max(1, min(int(page_limit), PAGE_LIMIT))

    def start_state(self) -> PaginationState:
        return PaginationState()

    def next_page_params(self, state: PaginationState) -> PageParams:
        return PageParams(limit=self.page_limit, before=state.cursor)

    def advance(self, state: PaginationState, page: Page) -> PaginationState:
        """Move the cursor past ``page``.

        An empty page exhausts the feed. So does a page shorter than the
        requested limit: the API only returns fewer messages than asked for when
        nothing older is left.
        """
        if not page:
            return replace(state, exhausted=True)

        last_id = str(page[-1]["id"])
        if state.cursor is not None and id_key(last_id) >= id_key(state.cursor):
            raise PaginationError(f"cursor did not advance: {last_id} is not older than {state.cursor}")
        return replace(
            state,
            cursor=last_id,
            last_seen_id=last_id,
            total_fetched=state.total_fetched + len(page),
            exhausted=len(page) < self.page_limit,
        )

    def keep(self, state: PaginationState, page: Page) -> Tuple[List[Message], PaginationState]:
        """Select the messages of ``page`` to persist and update the kept count."""
        kept: List[Message] = []
        exhausted = state.exhausted
        for message in page:
            if self.stop_at_id is not None and id_key(message["id"]) <= id_key(self.stop_at_id):
                # Newest-first: everything from here on was exported by an earlier run.
                exhausted = True
                break
            if self._in_range(message):
                kept.append(message)

        if self.max_messages and state.kept + len(kept) >= self.max_messages:
            kept = kept[: self.max_messages - state.kept]
            exhausted = True

        return kept, replace(state, kept=state.kept + len(kept), exhausted=exhausted)

    def _in_range(self, message: Message) -> bool:
        if self.start is None and self.end is None:
            return True
        moment = parse_timestamp(message.get("timestamp"))
        if moment is None:
            return False
        return in_range(moment, self.start, self.end)
