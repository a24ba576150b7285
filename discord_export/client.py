from __future__ import annotations

import json as _json
import time as _time
from typing import Any, Dict, Mapping, Optional

from .constants import DISCORD_API_BASE, HTTP_TOO_MANY_REQUESTS, PAGE_LIMIT
from .models import FetchOutcome, OutcomeKind
from .transport import BaseTransport, HttpResponse, RequestsTransport

_STATUS_KINDS = {
    401: OutcomeKind.UNAUTHORIZED,
    403: OutcomeKind.FORBIDDEN,
    404: OutcomeKind.NOT_FOUND,
    HTTP_TOO_MANY_REQUESTS: OutcomeKind.RATE_LIMITED,
}


class DiscordClient:
    """Thin Discord REST client.

    Every call returns a FetchOutcome; nothing here raises for HTTP statuses.
    Transport exceptions (connection errors, timeouts) are not caught.
    """

    def __init__(
        self,
        token: str,
        transport: Optional[BaseTransport] = None,
        api_base: str = DISCORD_API_BASE,
        timeout: float = 20,
    ) -> None:
        self._token = token
        self._transport = transport or RequestsTransport()
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    def get_messages(self, channel_id: str, limit: int = PAGE_LIMIT, before: Optional[str] = None) -> FetchOutcome:
        params: Dict[str, Any] = {"limit": max(1, min(int(limit), PAGE_LIMIT))}
        if before:
            params["before"] = before
        outcome = self._get(f"/channels/{channel_id}/messages", params)
        if outcome.ok and not isinstance(outcome.data, list):
            return FetchOutcome(
                kind=OutcomeKind.INVALID_PAYLOAD,
                status_code=outcome.status_code,
                data=outcome.data,
                latency_ms=outcome.latency_ms,
                error="expected a JSON array of messages",
            )
        return outcome

    def get_current_user(self) -> FetchOutcome:
        return self._get("/users/@me")

    def get_guild(self, guild_id: str) -> FetchOutcome:
        return self._get(f"/guilds/{guild_id}")

    def get_channel(self, channel_id: str) -> FetchOutcome:
        return self._get(f"/channels/{channel_id}")

    def close(self) -> None:
        self._transport.close()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": self._token,
            "Content-Type": "application/json",
        }

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> FetchOutcome:
        start = _time.time()
        resp = self._transport.get(
            f"{self._api_base}{path}",
            params=params,
            headers=self._headers(),
            timeout=self._timeout,
        )
        latency_ms = int((_time.time() - start) * 1000)
        return _to_outcome(resp, latency_ms)


def _to_outcome(resp: HttpResponse, latency_ms: int) -> FetchOutcome:
    status_code = resp.status_code
    payload: Any = None
    decode_error: Optional[str] = None
    if resp.text:
        try:
            payload = _json.loads(resp.text)
        except ValueError as exc:
            decode_error = f"invalid_json: {exc}"

    if 200 <= status_code < 300:
        if decode_error:
            return FetchOutcome(
                kind=OutcomeKind.INVALID_PAYLOAD,
                status_code=status_code,
                data=resp.text[:1000],
                latency_ms=latency_ms,
                error=decode_error,
            )
        return FetchOutcome(kind=OutcomeKind.OK, status_code=status_code, data=payload, latency_ms=latency_ms)

    kind = _STATUS_KINDS.get(status_code, OutcomeKind.HTTP_ERROR)
    error_msg = None
    if isinstance(payload, dict):
        error_msg = payload.get("message") or payload.get("error")
    return FetchOutcome(
        kind=kind,
        status_code=status_code,
        data=payload,
        latency_ms=latency_ms,
        retry_after=_retry_after(resp.headers, payload) if kind is OutcomeKind.RATE_LIMITED else None,
        error=error_msg or f"http_{status_code}",
    )


def _retry_after(headers: Mapping[str, str], payload: Any) -> Optional[float]:
    if isinstance(payload, dict) and payload.get("retry_after") is not None:
        try:
            return float(payload["retry_after"])
        except (TypeError, ValueError):
            pass
    for key, value in headers.items():
        if key.lower() == "retry-after":
            try:
                return float(value)
            except (TypeError, ValueError):
                return None
    return None
