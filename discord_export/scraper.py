from __future__ import annotations

import logging
import math
import time
from typing import Callable, List, Optional

from .auth import AccessValidator, TokenStore
from .backoff import BackoffStrategy
from .client import DiscordClient
from .config import ExportConfig
from .constants import UNKNOWN_NAME
from .context import CancelToken, RunContext
from .dates import TimestampInput, parse_range
from .errors import AccessDenied, ExportError, NotFound, RemoteError, StorageError
from .factory import ClientFactory
from .metrics import MetricsCollector
from .models import ChannelMetadata, Message, RunState, ScrapeResult
from .pagination import PaginationCursor
from .rate_limiter import RateLimiter
from .storage import CsvAppendStorage, HighWaterMark, StorageBase

LOGGER = logging.getLogger(__name__)


class ChannelScraper:
    """Drives one channel export from authentication to the last page.

    Pages are fetched strictly one after another because the cursor for the
    next page is the id of the last message of the current one. Every kept page
    is handed to storage before the next request is made.
    """

    def __init__(
        self,
        tokens: TokenStore,
        client_factory: Callable[[str], DiscordClient],
        limiter: RateLimiter,
        storage: Optional[StorageBase] = None,
        config: Optional[ExportConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        cancel: Optional[CancelToken] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._tokens = tokens
        self._client_factory = client_factory
        self._limiter = limiter
        self._storage = storage
        self._config = config or ExportConfig()
        self._metrics = metrics
        self._cancel = cancel or CancelToken()
        self._sleep = sleep or self._cancel.sleep
        self.state = RunState.INIT

    def scrape(
        self,
        server_id: str,
        channel_id: str,
        max_messages: int = 0,
        start: TimestampInput = None,
        end: TimestampInput = None,
    ) -> ScrapeResult:
        started = time.monotonic()
        ctx = RunContext(channel_id=channel_id)
        self.state = RunState.INIT
        messages: List[Message] = []
        errors: List[str] = []
        warnings: List[str] = []
        total_fetched = 0
        total_appended = 0
        output_path: Optional[str] = None
        metadata: Optional[ChannelMetadata] = None

        ctx.record(
            "scrape.start",
            server_id=server_id,
            max_messages=max_messages or "UNLIMITED",
            start=start,
            end=end,
        )

        try:
            self.state = RunState.AUTHENTICATING
            with ctx.timed("authenticate"):
                client = self._client_factory(self._tokens.get_credential())
                validator = AccessValidator(client, self._limiter)
                user = validator.verify_credential()
                ctx.record("authenticated", user_id=(user or {}).get("id"))

            self.state = RunState.VALIDATING
            with ctx.timed("validate"):
                start_dt, end_dt = parse_range(start, end)
                check = validator.validate_access(channel_id)
                if not check.ok:
                    detail = f"Channel access validation failed: {check.reason}"
                    if check.status_code == 404:
                        raise NotFound(detail)
                    if check.status_code == 403:
                        raise AccessDenied(detail)
                    raise RemoteError(detail, status_code=check.status_code)
                metadata = self._resolve_metadata(client, server_id, channel_id, warnings, ctx)

            stop_at_id = None
            mark: Optional[HighWaterMark] = None
            if self._storage is not None:
                output_path = self._storage.initialize(channel_id)
                if self._config.incremental:
                    mark = HighWaterMark.for_export(output_path)
                    stop_at_id = mark.load()
                    ctx.record("incremental", stop_at_id=stop_at_id)

            cursor = PaginationCursor(
                max_messages=max_messages,
                start=start_dt,
                end=end_dt,
                stop_at_id=stop_at_id,
                page_limit=self._config.page_limit,
            )
            pstate = cursor.start_state()
            newest_appended: Optional[str] = None

            self.state = RunState.FETCHING
            while not pstate.exhausted:
                self._cancel.raise_if_cancelled()
                params = cursor.next_page_params(pstate)
                page = self._limiter.execute_with_retry(
                    lambda: client.get_messages(channel_id, params.limit, params.before),
                    f"fetch messages from channel {channel_id}",
                    context=ctx,
                )
                pstate = cursor.advance(pstate, page)
                total_fetched = pstate.total_fetched
                if not page:
                    ctx.record("feed.exhausted", total_fetched=total_fetched)
                    break

                kept, pstate = cursor.keep(pstate, page)
                messages.extend(kept)

                if kept and self._storage is not None:
                    try:
                        result = self._storage.append_batch(kept, metadata, self._config.batch_size)
                    except StorageError as exc:
                        total_appended += exc.appended
                        raise
                    total_appended += result.appended
                    errors.extend(result.errors)
                    if result.newest_id is not None and newest_appended is None:
                        newest_appended = result.newest_id

                ctx.record(
                    "page",
                    before=params.before,
                    page_size=len(page),
                    kept=len(kept),
                    total_kept=pstate.kept,
                    total_appended=total_appended,
                )

                if pstate.exhausted:
                    if max_messages and pstate.kept >= max_messages:
                        ctx.record("cap.reached", max_messages=max_messages)
                    else:
                        ctx.record("feed.exhausted", total_fetched=total_fetched)
                    break
                self._sleep(self._config.page_delay_seconds)

            self.state = RunState.DONE
            if mark is not None and newest_appended is not None:
                mark.save(newest_appended)

        except Exception as exc:  # noqa: BLE001
            self.state = RunState.FAILED
            errors.append(str(exc) or type(exc).__name__)
            ctx.record(
                "scrape.failed",
                level=logging.ERROR,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=ctx.elapsed_ms(),
            )
            if not isinstance(exc, ExportError):
                LOGGER.debug("Unexpected failure", exc_info=True)

        duration_ms = int((time.monotonic() - started) * 1000)
        batch_count = math.ceil(total_fetched / self._config.page_limit) if total_fetched else 0
        snapshot = self._metrics.snapshot(window_secs=max(1, duration_ms // 1000 + 1)) if self._metrics else None
        ctx.record(
            "scrape.end",
            state=self.state.value,
            total_scraped=len(messages),
            total_fetched=total_fetched,
            total_appended=total_appended,
            batch_count=batch_count,
            errors=len(errors),
            duration_ms=duration_ms,
            requests=snapshot.total_requests if snapshot else None,
            http_429=snapshot.http_429_count if snapshot else None,
            avg_latency_ms=round(snapshot.avg_latency_ms, 1) if snapshot else None,
        )

        return ScrapeResult(
            server_id=server_id,
            channel_id=channel_id,
            messages=messages,
            total_scraped=len(messages),
            total_appended=total_appended,
            total_fetched=total_fetched,
            batch_count=batch_count,
            errors=errors,
            warnings=warnings,
            duration_ms=duration_ms,
            state=self.state,
            output_path=output_path,
            metadata=metadata,
        )

    def _resolve_metadata(self, client, server_id, channel_id, warnings, ctx) -> ChannelMetadata:
        server_name = self._lookup_name(client.get_guild, server_id, "server", warnings, ctx) if server_id else UNKNOWN_NAME
        channel_name = self._lookup_name(client.get_channel, channel_id, "channel", warnings, ctx)
        return ChannelMetadata(
            server_name=server_name,
            server_id=server_id or "",
            channel_name=channel_name,
            channel_id=channel_id,
        )

    def _lookup_name(self, fetch, ref, label, warnings, ctx) -> str:
        try:
            data = self._limiter.execute_with_retry(lambda: fetch(ref), f"get {label} info", context=ctx)
        except ExportError as exc:
            warnings.append(f"Failed to fetch {label} info for {ref}: {exc}")
            ctx.record(f"{label}_info.unavailable", level=logging.WARNING, error=str(exc))
            return UNKNOWN_NAME
        name = data.get("name") if isinstance(data, dict) else None
        return name or UNKNOWN_NAME


def scrape_channel(
    server_id: str,
    channel_id: str,
    max_messages: int = 0,
    start: TimestampInput = None,
    end: TimestampInput = None,
    config: Optional[ExportConfig] = None,
    token: Optional[str] = None,
    cancel: Optional[CancelToken] = None,
) -> ScrapeResult:
    """Export a channel's history to ``<output_dir>/<prefix>_<channel_id>.csv``."""
    config = config or ExportConfig()
    problems = config.validate()
    if problems:
        raise ValueError("Invalid configuration: " + "; ".join(problems))

    cancel = cancel or CancelToken()
    metrics = MetricsCollector()
    limiter = RateLimiter(
        max_requests=config.requests_per_second,
        window_seconds=config.rate_window_seconds,
        backoff=BackoffStrategy(
            base_seconds=config.retry_delay_seconds,
            max_seconds=config.max_retry_delay_seconds,
        ),
        max_retries=config.max_retries,
        metrics=metrics,
        sleep=cancel.sleep,
    )
    factory = ClientFactory(
        transport=config.transport,
        impersonate=config.impersonate,
        api_base=config.api_base,
        timeout=config.timeout_seconds,
    )
    storage = CsvAppendStorage(config.output_dir, file_prefix=config.file_prefix, batch_size=config.batch_size)
    scraper = ChannelScraper(
        tokens=TokenStore(config.token_file, token=token),
        client_factory=factory.create_client,
        limiter=limiter,
        storage=storage,
        config=config,
        metrics=metrics,
        cancel=cancel,
    )
    try:
        return scraper.scrape(server_id, channel_id, max_messages=max_messages, start=start, end=end)
    finally:
        factory.close()
