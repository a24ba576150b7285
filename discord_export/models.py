from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .constants import CSV_HEADERS
from .errors import AccessDenied, AuthFailure, NotFound, RemoteError, SerializationFailure

Message = Dict[str, Any]
Page = List[Message]


class OutcomeKind(str, enum.Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    INVALID_PAYLOAD = "invalid_payload"


class RunState(str, enum.Enum):
    INIT = "INIT"
    AUTHENTICATING = "AUTHENTICATING"
    VALIDATING = "VALIDATING"
    FETCHING = "FETCHING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class FetchOutcome:
    """Tagged result of a single remote call.

    Callers branch on ``kind`` instead of inspecting error text.
    """

    kind: OutcomeKind
    status_code: Optional[int]
    data: Any = None
    latency_ms: int = 0
    retry_after: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK

    @property
    def rate_limited(self) -> bool:
        return self.kind is OutcomeKind.RATE_LIMITED

    def raise_for_kind(self, operation: str = "request") -> None:
        """Raise the exception matching a failed outcome; no-op when ok."""
        if self.ok:
            return
        detail = f"{operation} failed with status {self.status_code}"
        if self.error:
            detail = f"{detail}: {self.error}"
        if self.kind is OutcomeKind.UNAUTHORIZED:
            raise AuthFailure(detail)
        if self.kind is OutcomeKind.FORBIDDEN:
            raise AccessDenied(detail)
        if self.kind is OutcomeKind.NOT_FOUND:
            raise NotFound(detail)
        raise RemoteError(detail, status_code=self.status_code, body=self.data)


@dataclass(frozen=True)
class PageParams:
    limit: int
    before: Optional[str] = None


@dataclass(frozen=True)
class PaginationState:
    cursor: Optional[str] = None
    exhausted: bool = False
    total_fetched: int = 0
    last_seen_id: Optional[str] = None
    kept: int = 0


@dataclass(frozen=True)
class RateStatus:
    requests_in_window: int
    available: int


@dataclass(frozen=True)
class ChannelMetadata:
    server_name: str
    server_id: str
    channel_name: str
    channel_id: str


def serialize_payload(payload: Message) -> str:
    """Encode a message as compact JSON for the ``data`` column."""
    try:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationFailure(str(exc)) from exc


@dataclass(frozen=True)
class ExportRecord:
    server_name: str
    server_id: str
    channel_name: str
    channel_id: str
    payload: Message

    @classmethod
    def from_message(cls, message: Message, metadata: ChannelMetadata) -> "ExportRecord":
        return cls(
            server_name=metadata.server_name,
            server_id=metadata.server_id,
            channel_name=metadata.channel_name,
            channel_id=metadata.channel_id,
            payload=message,
        )

    def as_row(self) -> Tuple[str, ...]:
        return (
            str(self.server_name),
            str(self.server_id),
            str(self.channel_name),
            str(self.channel_id),
            serialize_payload(self.payload),
        )

    @classmethod
    def from_row(cls, row: List[str]) -> "ExportRecord":
        if len(row) != len(CSV_HEADERS):
            raise ValueError(f"expected {len(CSV_HEADERS)} columns, got {len(row)}")
        server_name, server_id, channel_name, channel_id, data = row
        return cls(
            server_name=server_name,
            server_id=server_id,
            channel_name=channel_name,
            channel_id=channel_id,
            payload=json.loads(data),
        )


@dataclass(frozen=True)
class AccessCheck:
    ok: bool
    reason: Optional[str] = None
    status_code: Optional[int] = None


@dataclass(frozen=True)
class AppendResult:
    appended: int
    errors: List[str] = field(default_factory=list)
    newest_id: Optional[str] = None


@dataclass(frozen=True)
class StorageStats:
    path: str
    exists: bool
    size_bytes: int
    row_count: int

    @property
    def size_kb(self) -> str:
        return f"{self.size_bytes / 1024:.2f}"


@dataclass(frozen=True)
class ScrapeResult:
    server_id: str
    channel_id: str
    messages: List[Message]
    total_scraped: int
    total_appended: int
    total_fetched: int
    batch_count: int
    errors: List[str]
    warnings: List[str]
    duration_ms: int
    state: RunState
    output_path: Optional[str] = None
    metadata: Optional[ChannelMetadata] = None

    @property
    def success(self) -> bool:
        return self.state is RunState.DONE and not self.errors


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total_requests: int
    success_count: int
    http_429_count: int
    http_403_count: int
    error_count: int
    avg_latency_ms: float
    timestamp: float
