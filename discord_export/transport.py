from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from curl_cffi import requests as curl_requests


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)


class BaseTransport(ABC):
    """Abstract HTTP transport used by the API client.

    Implementations return a plain HttpResponse for every answer the server
    gives, whatever the status. Network level failures are raised as the
    underlying library's exceptions."""

    @abstractmethod
    def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 20,
    ) -> HttpResponse:
        ...

    def close(self) -> None:
        """Release pooled connections."""


class RequestsTransport(BaseTransport):
    """Plain ``requests`` session."""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._session = session or requests.Session()

    def get(self, url, params=None, headers=None, timeout=20) -> HttpResponse:
        resp = self._session.get(url, params=params or None, headers=headers, timeout=timeout)
        return HttpResponse(status_code=resp.status_code, text=resp.text, headers=dict(resp.headers))

    def close(self) -> None:
        self._session.close()


class CurlTransport(BaseTransport):
    """``curl_cffi`` session impersonating a desktop browser's TLS fingerprint."""

    def __init__(self, impersonate: str = "chrome120") -> None:
        self._impersonate = impersonate
        self._session = curl_requests.Session()

    def get(self, url, params=None, headers=None, timeout=20) -> HttpResponse:
        resp = self._session.request(
            method="GET",
            url=url,
            params=params or None,
            headers=headers,
            impersonate=self._impersonate,
            timeout=timeout,
        )
        return HttpResponse(status_code=resp.status_code, text=resp.text, headers=dict(resp.headers))

    def close(self) -> None:
        self._session.close()
