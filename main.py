from __future__ import annotations

import argparse
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from discord_export.config import ConfigError, ExportConfig
from discord_export.context import CancelToken, setup_logging
from discord_export.scraper import scrape_channel
from discord_export.storage import file_stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the full message history of a Discord channel to CSV")
    parser.add_argument("--server", required=True, help="Server (guild) id")
    parser.add_argument("--channel", required=True, help="Channel id")
    parser.add_argument("--token", default=None, help="API token (falls back to DISCORD_TOKEN, then --token-file)")
    parser.add_argument("--token-file", default=None, help="JSON token file")
    parser.add_argument("--output-dir", default=None, help="Directory for the CSV export")

    parser.add_argument("--max-messages", type=int, default=0, help="Stop after this many kept messages (0 = all)")
    parser.add_argument("--start", default=None, help="Keep messages at or after this ISO-8601 timestamp or date")
    parser.add_argument("--end", default=None, help="Keep messages at or before this ISO-8601 timestamp or date")

    parser.add_argument("--rps", type=int, default=None, help="Max requests per second")
    parser.add_argument("--max-retries", type=int, default=None, help="Attempts per request when rate limited")
    parser.add_argument("--retry-delay", type=float, default=None, help="Base backoff delay in seconds")
    parser.add_argument("--page-delay", type=float, default=None, help="Pause between pages in seconds")
    parser.add_argument("--transport", choices=["requests", "curl"], default=None, help="HTTP transport")
    parser.add_argument("--incremental", action="store_true", default=None,
                        help="Stop at the newest message exported by a previous run")

    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", default=None, help="Log file path")
    return parser


def _print_summary(result, csv_path: Optional[str]) -> None:
    meta = result.metadata
    stats = file_stats(csv_path) if csv_path else None

    status = "SUCCESS" if result.success else "FINISHED WITH ERRORS"
    print(f"\nDISCORD CHANNEL EXPORT - {status}")
    if meta:
        print(f"Server: {meta.server_name} ({meta.server_id})")
        print(f"Channel: {meta.channel_name} ({meta.channel_id})")
    print(f"State: {result.state.value}")
    print(f"Messages Fetched: {result.total_fetched} in {result.batch_count} pages")
    print(f"Messages Scraped: {result.total_scraped}")
    print(f"Messages Appended: {result.total_appended}")
    if stats:
        print(f"Total Rows in CSV: {stats.row_count}")
        print(f"CSV File Size: {stats.size_kb} KB")
        print(f"CSV Location: {stats.path}")
    print(f"Total Duration: {result.duration_ms / 1000:.2f}s")

    for warning in result.warnings:
        print(f"   warning: {warning}")
    for err in result.errors:
        print(f"   - {err}", file=sys.stderr)


def _report_problems(problems: list[str]) -> int:
    print("Invalid configuration:", file=sys.stderr)
    for problem in problems:
        print(f"   - {problem}", file=sys.stderr)
    return 2


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)

    try:
        config = ExportConfig.from_env(
            token_file=args.token_file,
            output_dir=args.output_dir,
            requests_per_second=args.rps,
            max_retries=args.max_retries,
            retry_delay_seconds=args.retry_delay,
            page_delay_seconds=args.page_delay,
            transport=args.transport,
            incremental=args.incremental,
            log_level=args.log_level,
            log_file=args.log_file,
        )
    except ConfigError as exc:
        return _report_problems(exc.problems)
    problems = config.validate()
    if problems:
        return _report_problems(problems)

    setup_logging(config.log_level, config.log_file)

    cancel = CancelToken()
    signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel())

    try:
        result = scrape_channel(
            args.server,
            args.channel,
            max_messages=args.max_messages,
            start=args.start,
            end=args.end,
            config=config,
            token=args.token,
            cancel=cancel,
        )
    except ValueError as exc:
        print(f"FATAL ERROR: {exc}", file=sys.stderr)
        return 2

    _print_summary(result, result.output_path)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
