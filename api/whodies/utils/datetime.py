"""Datetime helpers for ingestion payloads and queue timestamps."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def parse_date(value: str | None) -> date | None:
    """Parse YYYY, YYYY-MM, or YYYY-MM-DD strings into dates."""
    if not value:
        return None
    try:
        if len(value) == 4:
            return date.fromisoformat(f"{value}-01-01")
        if len(value) == 7:
            return date.fromisoformat(f"{value}-01")
        return date.fromisoformat(value)
    except ValueError:
        return None


def release_year(value: str | None) -> int:
    """Calendar year of a release date, or 0 when unknown."""
    parsed = parse_date(value)
    return parsed.year if parsed else 0
