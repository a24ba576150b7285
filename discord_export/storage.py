from __future__ import annotations

import csv
import datetime as _dt
import io
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Sequence

from .constants import BATCH_INSERT_SIZE, CSV_FILE_PREFIX, CSV_HEADERS
from .errors import SerializationFailure, StorageError
from .models import AppendResult, ChannelMetadata, ExportRecord, Message, StorageStats
from .pagination import id_key

LOGGER = logging.getLogger(__name__)


class StorageBase(ABC):
    """Abstract base class for append-only export backends."""

    @abstractmethod
    def initialize(self, channel_id: str) -> str:
        """Prepare the artifact for ``channel_id`` and return its location."""

    @abstractmethod
    def append_batch(self, messages: Sequence[Message], metadata: ChannelMetadata,
                     batch_size: Optional[int] = None) -> AppendResult:
        """Persist ``messages``; serialization problems are returned, not raised.

        Write failures raise ``StorageError`` carrying the rows already appended.
        """

    @abstractmethod
    def stats(self) -> StorageStats:
        """Describe the artifact as it is on disk."""


def _csv_writer(buffer: io.StringIO):
    return csv.writer(buffer, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\n")


def encode_rows(rows: Sequence[Sequence[str]]) -> str:
    """Encode rows as RFC-4180 text: fields holding a comma, quote or newline are quoted."""
    buffer = io.StringIO()
    _csv_writer(buffer).writerows(rows)
    return buffer.getvalue()


class CsvAppendStorage(StorageBase):
    """One CSV file per channel, header written once, rows only ever appended."""

    def __init__(self, output_dir: str, file_prefix: str = CSV_FILE_PREFIX,
                 batch_size: int = BATCH_INSERT_SIZE) -> None:
        self._output_dir = output_dir
        self._file_prefix = file_prefix
        self._batch_size = max(1, batch_size)
        self._path: Optional[str] = None

    @property
    def path(self) -> Optional[str]:
        return self._path

    def path_for(self, channel_id: str) -> str:
        return os.path.join(self._output_dir, f"{self._file_prefix}_{channel_id}.csv")

    def initialize(self, channel_id: str) -> str:
        path = self.path_for(channel_id)
        try:
            os.makedirs(self._output_dir, exist_ok=True)
            if not os.path.exists(path) or os.path.getsize(path) == 0:
                self._write(path, encode_rows([CSV_HEADERS]))
                LOGGER.info("Created new CSV file %s", path)
            else:
                LOGGER.info("CSV file %s exists (%d bytes), will append", path, os.path.getsize(path))
        except OSError as exc:
            raise StorageError(f"Failed to initialize {path}: {exc}") from exc
        self._path = path
        return path

    def append_batch(self, messages, metadata, batch_size=None) -> AppendResult:
        if not self._path:
            raise StorageError("CSV file not initialized")
        size = max(1, batch_size or self._batch_size)
        errors: List[str] = []
        appended = 0
        newest_id: Optional[str] = None

        for start in range(0, len(messages), size):
            batch_number = start // size + 1
            rows = []
            written_ids = []
            for message in messages[start:start + size]:
                try:
                    rows.append(ExportRecord.from_message(message, metadata).as_row())
                except SerializationFailure as exc:
                    message_id = message.get("id") if isinstance(message, dict) else None
                    errors.append(f"Batch {batch_number}: message {message_id}: {exc}")
                    continue
                if message.get("id") is not None:
                    written_ids.append(str(message["id"]))
            if not rows:
                continue
            try:
                self._write(self._path, encode_rows(rows))
            except OSError as exc:
                raise StorageError(
                    f"Failed to append batch {batch_number} to {self._path}: {exc}", appended=appended
                ) from exc
            appended += len(rows)
            for message_id in written_ids:
                if newest_id is None or id_key(message_id) > id_key(newest_id):
                    newest_id = message_id
            LOGGER.debug("Batch %d appended (%d rows, %d total)", batch_number, len(rows), appended)

        return AppendResult(appended=appended, errors=errors, newest_id=newest_id)

    def stats(self) -> StorageStats:
        return file_stats(self._path or "")

    @staticmethod
    def _write(path: str, text: str) -> None:
        with open(path, "a", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())


def file_stats(path: str) -> StorageStats:
    """Re-scan an export file; the row count excludes the header."""
    if not path or not os.path.exists(path):
        return StorageStats(path=path, exists=False, size_bytes=0, row_count=0)
    size = os.path.getsize(path)
    with open(path, "r", encoding="utf-8", newline="") as f:
        rows = sum(1 for row in csv.reader(f) if row)
    return StorageStats(path=path, exists=True, size_bytes=size, row_count=max(0, rows - 1))


def read_records(path: str) -> Iterator[ExportRecord]:
    """Parse an export file back into records, skipping the header."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is not None and tuple(header) != CSV_HEADERS:
            raise ValueError(f"Unexpected header in {path}: {header}")
        for row in reader:
            if row:
                yield ExportRecord.from_row(row)


class HighWaterMark:
    """JSON sidecar holding the newest message id exported for a channel."""

    def __init__(self, path: str) -> None:
        self.path = path

    @classmethod
    def for_export(cls, csv_path: str) -> "HighWaterMark":
        base, _ = os.path.splitext(csv_path)
        return cls(f"{base}.state.json")

    def load(self) -> Optional[str]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable high-water mark %s: %s", self.path, exc)
            return None
        value = data.get("last_message_id") if isinstance(data, dict) else None
        return str(value) if value else None

    def save(self, message_id: str) -> bool:
        """Store ``message_id`` if it is newer than the current mark."""
        current = self.load()
        if current is not None and id_key(message_id) <= id_key(current):
            return False
        doc = {
            "last_message_id": str(message_id),
            "updated_at": _dt.datetime.now(_dt.timezone.utc).isoformat(),
        }
        directory = os.path.dirname(self.path) or "."
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".hwm-", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Failed to save high-water mark {self.path}: {exc}") from exc
        return True
