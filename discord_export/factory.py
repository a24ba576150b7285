from __future__ import annotations

from typing import Dict

from .client import DiscordClient
from .constants import DISCORD_API_BASE
from .transport import BaseTransport, CurlTransport, RequestsTransport

TRANSPORTS = ("requests", "curl")


class ClientFactory:
    """Factory for API clients bound to a credential.

    Transports are created once per name and shared by every client the
    factory builds, so connection pools survive re-authentication.
    """

    def __init__(
        self,
        transport: str = "requests",
        impersonate: str = "chrome120",
        api_base: str = DISCORD_API_BASE,
        timeout: float = 20,
    ) -> None:
        if transport not in TRANSPORTS:
            raise ValueError(f"Unknown transport: {transport}")
        self._transport_name = transport
        self._impersonate = impersonate
        self._api_base = api_base
        self._timeout = timeout
        self._cache: Dict[str, BaseTransport] = {}

    def _transport(self) -> BaseTransport:
        name = self._transport_name
        if name not in self._cache:
            if name == "curl":
                self._cache[name] = CurlTransport(impersonate=self._impersonate)
            else:
                self._cache[name] = RequestsTransport()
        return self._cache[name]

    def create_client(self, token: str) -> DiscordClient:
        return DiscordClient(
            token=token,
            transport=self._transport(),
            api_base=self._api_base,
            timeout=self._timeout,
        )

    def close(self) -> None:
        for transport in self._cache.values():
            transport.close()
        self._cache.clear()
