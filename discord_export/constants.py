from __future__ import annotations

DISCORD_API_BASE = "https://discord.com/api/v9"

# API ceiling for the messages endpoint.
PAGE_LIMIT = 100

REQUESTS_PER_SECOND = 10
RATE_WINDOW_SECONDS = 1.0
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0
MAX_RETRY_DELAY_SECONDS = 30.0
PAGE_DELAY_SECONDS = 0.1
BATCH_INSERT_SIZE = 100

HTTP_TOO_MANY_REQUESTS = 429

CSV_HEADERS = ("server_name", "server_id", "channel_name", "channel_id", "data")
CSV_FILE_PREFIX = "discord_messages"

DEFAULT_OUTPUT_DIR = "./data/exports"
DEFAULT_TOKEN_FILE = "./data/sessions/discord-token.json"
DEFAULT_LOG_FILE = "./logs/discord-export.log"

TOKEN_ENV_VAR = "DISCORD_TOKEN"
UNKNOWN_NAME = "Unknown"
