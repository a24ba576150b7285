"""Discord channel history exporter.

Walks a channel's message feed backwards under a sliding-window rate limit and
appends every kept message to a per-channel CSV file.

Key modules:
    scraper         -- ChannelScraper orchestrator and scrape_channel entry point
    pagination      -- PaginationCursor for the backward "before" walk
    rate_limiter    -- RateLimiter sliding window and rate-limit retries
    backoff         -- BackoffStrategy for exponential retry delays
    storage         -- CsvAppendStorage and HighWaterMark persistence
    client          -- DiscordClient returning tagged FetchOutcome results
    transport       -- requests / curl_cffi HTTP transports
    factory         -- ClientFactory for credential-bound clients
    auth            -- TokenStore and AccessValidator
    metrics         -- MetricsCollector for request statistics
    context         -- RunContext, CancelToken and logging setup
    config          -- ExportConfig
    models          -- dataclasses shared by all modules
    errors          -- exception taxonomy
"""
from .config import ExportConfig
from .context import CancelToken
from .models import ScrapeResult
from .scraper import ChannelScraper, scrape_channel

__all__ = ["ChannelScraper", "CancelToken", "ExportConfig", "ScrapeResult", "scrape_channel"]
