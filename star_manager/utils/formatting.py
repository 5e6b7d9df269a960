"""
Text formatting helpers for console output and LLM prompts.
"""

from __future__ import annotations

from datetime import datetime, timezone


def truncate(text: str | None, limit: int, placeholder: str = "no desc") -> str:
    """Shorten ``text`` to ``limit`` characters, substituting a placeholder for empty text."""
    if not text:
        return placeholder
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + "..."


def format_count(value: int) -> str:
    """Format an integer with thousands separators."""
    return f"{value:,}"


def parse_github_datetime(value: str | None) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp (``2024-01-10T00:00:00Z``).

    Returns:
        An aware datetime, or None for empty or malformed values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def years_ago(years: int, now: datetime | None = None) -> datetime:
    """Return the same calendar instant ``years`` years before ``now``."""
    now = now or datetime.now(timezone.utc)
    try:
        return now.replace(year=now.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return now.replace(year=now.year - years, day=28)
