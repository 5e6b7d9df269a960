"""Shared constants for the GitHub stars manager."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# HTTP status codes
# ---------------------------------------------------------------------------

HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_RATE_LIMIT = 429
HTTP_SERVER_ERROR_MIN = 500

# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT_HEADER = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"
STARRED_PAGE_SIZE = 100
GRAPHQL_PAGE_SIZE = 100
PAGE_FETCH_CONCURRENCY = 3
LIST_SCOPES = ("user", "write:user")
GRAPHQL_RETRYABLE_MARKER = "Something went wrong"
MAX_RETRY_DELAY = 60

# ---------------------------------------------------------------------------
# LLM service
# ---------------------------------------------------------------------------

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-3-5-haiku"
LLM_MAX_TOKENS = 4096
LLM_TIMEOUT = 120
APP_REFERER = "https://github.com/github-star-manager"
APP_TITLE = "GitHub Stars Manager"

# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------

GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
OPENROUTER_KEY_ENV = "OPENROUTER_API_KEY"

# ---------------------------------------------------------------------------
# Bulk execution and analysis defaults
# ---------------------------------------------------------------------------

BULK_CONCURRENCY = 10
MAX_ERROR_MESSAGES = 5
LLM_BATCH_SIZE = 20
LLM_MAX_ATTEMPTS = 3
DEBUG_BATCH_LIMIT = 2
STALE_YEARS = 2
LOW_STARS_THRESHOLD = 100
LIST_SAMPLE_SIZE = 40
MIN_SUGGESTED_LISTS = 5
MAX_SUGGESTED_LISTS = 8

# ---------------------------------------------------------------------------
# Local files
# ---------------------------------------------------------------------------

BACKUP_DIR_NAME = ".github-stars-backup"
BACKUP_SCHEMA_VERSION = 1
OUTPUT_DIR_NAME = "star_manager_output"
LOG_FILE_NAME = "star_manager.log"
PLAN_FILE_NAME = "plan.json"
