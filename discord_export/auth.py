"""Credential loading and channel access checks."""
from __future__ import annotations

import datetime as _dt
import json
import logging
import os
from typing import Optional

from .client import DiscordClient
from .constants import DEFAULT_TOKEN_FILE, TOKEN_ENV_VAR
from .errors import AccessDenied, NotFound, RemoteError, Unauthenticated
from .models import AccessCheck
from .rate_limiter import RateLimiter

LOGGER = logging.getLogger(__name__)


class TokenStore:
    """Resolves the API token.

    Lookup order: explicit token, ``DISCORD_TOKEN`` environment variable, token
    file. An explicit token is also saved to the token file for later runs.
    """

    def __init__(self, path: str = DEFAULT_TOKEN_FILE, token: Optional[str] = None,
                 env_var: str = TOKEN_ENV_VAR) -> None:
        self.path = path
        self._token = token.strip() if token else None
        self._env_var = env_var

    def get_credential(self) -> str:
        if self._token:
            self._save(self._token)
            return self._token

        env_token = os.environ.get(self._env_var, "").strip()
        if env_token:
            return env_token

        if os.path.exists(self.path):
            return self._load()

        raise Unauthenticated(
            f"Token file not found at {self.path}, {self._env_var} is not set and no token was provided"
        )

    def _load(self) -> str:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                content = f.read().strip()
        except OSError as exc:
            raise Unauthenticated(f"Cannot read token file {self.path}: {exc}") from exc
        if not content:
            raise Unauthenticated("Token file is empty")
        try:
            data = json.loads(content)
        except ValueError as exc:
            raise Unauthenticated(f"Token file is not valid JSON: {exc}") from exc
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token.strip():
            raise Unauthenticated("Token must be a non-empty string in token file")
        LOGGER.info("Token loaded from %s", self.path)
        return token.strip()

    def _save(self, token: str) -> None:
        # best effort
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump({"token": token, "created_at": _dt.datetime.now(_dt.timezone.utc).isoformat()}, f, indent=2)
        except OSError as exc:
            LOGGER.warning("Failed to save token to %s: %s", self.path, exc)


class AccessValidator:
    """Checks the credential and channel readability through the rate limiter."""

    def __init__(self, client: DiscordClient, limiter: RateLimiter) -> None:
        self._client = client
        self._limiter = limiter

    def verify_credential(self) -> dict:
        """Return the authenticated user; raises AuthFailure when rejected."""
        return self._limiter.execute_with_retry(self._client.get_current_user, "verify credential")

    def validate_access(self, channel_id: str) -> AccessCheck:
        """Check the channel is readable with a one-message read.

        Refusals come back as a failed AccessCheck; TransientRateLimit propagates.
        """
        try:
            self._limiter.execute_with_retry(
                lambda: self._client.get_messages(channel_id, limit=1),
                f"check access to channel {channel_id}",
            )
        except NotFound:
            return AccessCheck(ok=False, reason="Channel not found", status_code=404)
        except AccessDenied:
            return AccessCheck(ok=False, reason="No permission to access this channel", status_code=403)
        except RemoteError as exc:
            return AccessCheck(ok=False, reason=str(exc), status_code=exc.status_code)
        return AccessCheck(ok=True)
