"""Runtime configuration.

Defaults mirror the API's documented limits. ``from_env`` lets deployments
override them through ``DISCORD_EXPORT_*`` variables (``main.py`` loads a
``.env`` file first).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import List, Mapping, Optional

from .constants import (
    BATCH_INSERT_SIZE,
    CSV_FILE_PREFIX,
    DEFAULT_LOG_FILE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TOKEN_FILE,
    DISCORD_API_BASE,
    MAX_RETRIES,
    MAX_RETRY_DELAY_SECONDS,
    PAGE_DELAY_SECONDS,
    PAGE_LIMIT,
    RATE_WINDOW_SECONDS,
    REQUESTS_PER_SECOND,
    RETRY_DELAY_SECONDS,
)
from .factory import TRANSPORTS

ENV_PREFIX = "DISCORD_EXPORT_"


class ConfigError(ValueError):
    """One or more settings could not be read; ``problems`` lists them."""

    def __init__(self, problems: List[str]) -> None:
        super().__init__("Invalid configuration: " + "; ".join(problems))
        self.problems = problems


@dataclass(frozen=True)
class ExportConfig:
    requests_per_second: int = REQUESTS_PER_SECOND
    rate_window_seconds: float = RATE_WINDOW_SECONDS
    max_retries: int = MAX_RETRIES
    retry_delay_seconds: float = RETRY_DELAY_SECONDS
    max_retry_delay_seconds: float = MAX_RETRY_DELAY_SECONDS
    page_limit: int = PAGE_LIMIT
    page_delay_seconds: float = PAGE_DELAY_SECONDS
    batch_size: int = BATCH_INSERT_SIZE
    output_dir: str = DEFAULT_OUTPUT_DIR
    file_prefix: str = CSV_FILE_PREFIX
    token_file: str = DEFAULT_TOKEN_FILE
    log_file: Optional[str] = DEFAULT_LOG_FILE
    log_level: str = "INFO"
    api_base: str = DISCORD_API_BASE
    timeout_seconds: float = 20.0
    transport: str = "requests"
    impersonate: str = "chrome120"
    incremental: bool = False

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors: List[str] = []
        if not 1 <= self.page_limit <= PAGE_LIMIT:
            errors.append(f"page_limit must be between 1 and {PAGE_LIMIT}")
        if not 1 <= self.requests_per_second <= 100:
            errors.append("requests_per_second must be between 1 and 100")
        if self.max_retries < 1:
            errors.append("max_retries must be at least 1")
        if self.batch_size < 1:
            errors.append("batch_size must be at least 1")
        if self.retry_delay_seconds < 0 or self.page_delay_seconds < 0:
            errors.append("delays must not be negative")
        if self.transport not in TRANSPORTS:
            errors.append(f"transport must be one of {', '.join(TRANSPORTS)}")
        if not self.output_dir:
            errors.append("output_dir is required")
        return errors

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ExportConfig":
        """Build a config from ``DISCORD_EXPORT_<FIELD>`` variables plus overrides.

        Unparseable values raise ``ConfigError`` listing every bad variable.
        """
        env = os.environ if environ is None else environ
        values = {}
        problems: List[str] = []
        for f in fields(cls):
            name = ENV_PREFIX + f.name.upper()
            raw = env.get(name)
            if raw is None or raw == "":
                continue
            try:
                values[f.name] = _coerce(raw, f.default)
            except ValueError:
                problems.append(f"{name}: expected {type(f.default).__name__}, got {raw!r}")
        if problems:
            raise ConfigError(problems)
        config = cls(**values)
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(config, **overrides) if overrides else config


def _coerce(raw: str, default):
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
