"""Error taxonomy for a channel export run.

Only ``TransientRateLimit`` is ever produced after in-process retries; every
other error is terminal for the run except ``SerializationFailure``, which the
storage layer collects per record instead of raising.
"""
from __future__ import annotations

from typing import Any, Optional


class ExportError(Exception):
    """Base class for all export failures."""


class TransientRateLimit(ExportError):
    """The API kept answering 429 until the retry ceiling was reached."""

    def __init__(self, message: str, attempts: int, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.retry_after = retry_after


class AuthFailure(ExportError):
    """The credential was rejected by the API."""


class Unauthenticated(AuthFailure):
    """No credential is available at all."""


class AccessDenied(ExportError):
    """The credential cannot read the requested channel."""


class NotFound(ExportError):
    """The requested channel or server does not exist."""


class RemoteError(ExportError):
    """Non-retryable API failure that is not auth or access related."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SerializationFailure(ExportError):
    """A message payload could not be encoded for storage."""


class StorageError(ExportError):
    """The output artifact could not be created or written.

    ``appended`` counts the rows that reached the file before the failure.
    """

    def __init__(self, message: str, appended: int = 0) -> None:
        super().__init__(message)
        self.appended = appended


class PaginationError(ExportError):
    """The feed returned a page that would not move the cursor backwards."""


class ScrapeCancelled(ExportError):
    """The run was cancelled through its cancel token."""
