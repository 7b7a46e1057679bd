"""Datetime parsing: lax input -> strict output."""

from __future__ import annotations

import re
from datetime import datetime, timezone

import pendulum

# Sitemap lastmod format: YYYY-MM-DD
SITEMAP_DATE_FORMAT = "%Y-%m-%d"

# Nanosecond timestamps carry more fractional digits than datetime can hold.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_datetime(value: str) -> datetime:
    """Parse a lax ``updated_at`` string into a strict UTC-aware datetime.

    Accepts various formats:
    - 2026-02-02T22:21:29Z
    - 2026-02-02T22:21:29.975359123+00:00 (fraction truncated to microseconds)
    - 2026-02-02 22:21+00
    - 2026-02-02

    Missing timezone defaults to UTC.
    Missing time components default to zeros.
    """
    value_str = _FRACTION_RE.sub(r"\1", value.strip())

    parsed = pendulum.parse(value_str, tz="UTC", strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz="UTC"  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def format_sitemap_date(value: str | None) -> str | None:
    """Format a service ``updated_at`` value as ``YYYY-MM-DD``.

    Returns None for missing or unparseable input.
    """
    if not value:
        return None
    try:
        return parse_datetime(value).strftime(SITEMAP_DATE_FORMAT)
    except (ValueError, TypeError):
        return None


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def build_date() -> str:
    """Return today's date in sitemap format."""
    return now_utc().strftime(SITEMAP_DATE_FORMAT)
