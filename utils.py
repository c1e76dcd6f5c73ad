"""Shared utility functions for memo-app."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from config import ALL_CATEGORIES, VALID_CATEGORIES

_WHITESPACE = re.compile(r"\s+")


def normalize_tags(tags: str | None, dedupe: bool = True) -> str:
    """Normalize a space-delimited tag string.

    Examples:
        "  dp   algorithm " -> "dp algorithm"
        "dp dp graph"       -> "dp graph"      (dedupe=True)
        ""                  -> ""
    """
    tokens = [t for t in _WHITESPACE.split(tags or "") if t]
    if dedupe:
        tokens = list(dict.fromkeys(tokens))
    return " ".join(tokens)


def split_query(query: str | None) -> list[str]:
    """Split a search box value into lowercase tokens."""
    return [t for t in _WHITESPACE.split((query or "").lower()) if t]


def now_iso() -> str:
    """Current UTC timestamp; lexical order equals chronological order."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def escape_filter_value(value: str) -> str:
    """Escape single quotes in filter values to prevent injection."""
    return value.replace("'", "''")


def normalize_category(category: str | None, allow_all: bool = False) -> tuple[str | None, str | None]:
    """Validate a category string. Returns (category, error)."""
    if category is None or category == "":
        return None, None
    if allow_all and category == ALL_CATEGORIES:
        return ALL_CATEGORIES, None
    if category not in VALID_CATEGORIES:
        return None, f"Error: Invalid category '{category}'. Valid: {list(VALID_CATEGORIES)}"
    return category, None


def parse_rate(value: str | int | None) -> tuple[int | None, str | None]:
    """Parse an AtCoder rating form value. Returns (rate, error)."""
    if value is None or value == "":
        return None, None
    try:
        rate = int(value)
    except (TypeError, ValueError):
        return None, f"Error: AtCoder rate must be a number, got '{value}'"
    if rate < 0:
        return None, f"Error: AtCoder rate cannot be negative, got {rate}"
    return rate, None
