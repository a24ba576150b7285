"""Run context, cancellation and logging setup.

Each scrape gets its own ``RunContext`` which is passed explicitly to the
components it drives. Events are written as one JSON document per log line.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from .errors import ScrapeCancelled

LOGGER = logging.getLogger("discord_export")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure console and optional file output for the package logger."""
    LOGGER.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    LOGGER.addHandler(console)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        LOGGER.addHandler(file_handler)
    LOGGER.propagate = False


class CancelToken:
    """Cooperative cancellation shared by every suspension point of a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScrapeCancelled("scrape cancelled")

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        if seconds <= 0:
            self.raise_if_cancelled()
            return
        if self._event.wait(seconds):
            raise ScrapeCancelled("scrape cancelled")


class RunContext:
    """Correlation and timing context for one scrape."""

    def __init__(self, channel_id: Optional[str] = None, run_id: Optional[str] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.channel_id = channel_id
        self._logger = logger or LOGGER
        self._started = time.monotonic()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def record(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        """Emit a structured event. Never raises."""
        if not self._logger.isEnabledFor(level):
            return
        doc = {
            "timestamp": time.time(),
            "run_id": self.run_id,
            "event": event,
        }
        if self.channel_id is not None:
            doc["channel_id"] = self.channel_id
        doc.update(fields)
        try:
            line = json.dumps(doc, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = repr(doc)
        self._logger.log(level, line)

    @contextmanager
    def timed(self, operation: str, **fields: Any) -> Iterator[None]:
        """Record start, end (with duration) or failure of ``operation``."""
        start = time.monotonic()
        self.record(f"{operation}.start", **fields)
        try:
            yield
        except Exception as exc:
            self.record(
                f"{operation}.failed",
                level=logging.ERROR,
                duration_ms=int((time.monotonic() - start) * 1000),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise
        self.record(f"{operation}.end", duration_ms=int((time.monotonic() - start) * 1000))
