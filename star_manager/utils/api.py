"""
API utilities for the GitHub stars manager
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, TypeVar

import requests

from star_manager.constants import MAX_RETRY_DELAY
from star_manager.exceptions import GitHubAPIError
from star_manager.utils.logging import log_with_context

T = TypeVar("T")

_LAST_PAGE_RE = re.compile(r'[?&]page=(\d+)[^>]*>;\s*rel="last"')


def parse_last_page(link_header: str | None) -> int | None:
    """Extract the last page number from a GitHub ``Link`` header.

    Args:
        link_header: Raw header value, e.g.
            ``<https://api.github.com/user/starred?page=5>; rel="last"``.

    Returns:
        The page number, or None when the header has no parsable
        ``rel="last"`` entry.
    """
    if not link_header:
        return None
    match = _LAST_PAGE_RE.search(link_header)
    if not match:
        return None
    return int(match.group(1))


def is_retryable(error: Exception) -> bool:
    """Return True for errors worth repeating: 429, 5xx and transport failures."""
    if isinstance(error, GitHubAPIError):
        return error.retryable
    return isinstance(error, (requests.ConnectionError, requests.Timeout))


def call_with_retry(
    func: Callable[[], T],
    max_retries: int = 3,
    retry_delay: float = 1,
    description: str = "API call",
) -> T:
    """Call ``func`` and retry retryable failures with exponential backoff.

    Client errors are raised immediately. After ``max_retries`` retries the
    last error is raised.

    Args:
        func: Zero-argument callable performing the request.
        max_retries: Number of retries after the first attempt.
        retry_delay: Initial delay in seconds.
        description: Short label used in log messages.

    Returns:
        Whatever ``func`` returns.
    """
    backoff_factor = 2.0
    log_kwargs = {"component": "http"}

    for attempt in range(max_retries + 1):
        try:
            return func()
        except (GitHubAPIError, requests.RequestException) as e:
            if not is_retryable(e):
                log_with_context(
                    logging.DEBUG,
                    f"{description} failed with non-retryable error: {e}",
                    **log_kwargs,
                )
                raise

            if attempt >= max_retries:
                log_with_context(
                    logging.ERROR,
                    f"{description}: max retries reached. Last error: {e}",
                    **log_kwargs,
                )
                raise

            sleep_time = min(retry_delay * (backoff_factor**attempt), MAX_RETRY_DELAY)
            log_with_context(
                logging.WARNING,
                f"{description} failed ({e}), retrying in {sleep_time:.1f} seconds...",
                **log_kwargs,
            )
            time.sleep(sleep_time)

    raise RuntimeError("Exited retry loop unexpectedly.")
