"""Helpers for turning free-text movie requests into search inputs."""

from __future__ import annotations

import re

_TRAILING_YEAR = re.compile(r"^(.+?)\s*\(?((?:19|20)\d{2})\)?$")
_HTML_TAG = re.compile(r"<[^>]*>")


def parse_query_with_year(query: str) -> tuple[str, int | None]:
    """Split an optional trailing year (1900-2099) off a title query.

    "matrix 1999" and "matrix (1999)" both yield ("matrix", 1999). A year at
    the start belongs to the title ("2001 a space odyssey"), and a bare year
    ("1999") is treated as a title with no year.
    """
    trimmed = query.strip()
    match = _TRAILING_YEAR.match(trimmed)
    if match and match.group(1).strip():
        return match.group(1).strip(), int(match.group(2))
    return trimmed, None


def sanitize_query(raw: str, *, max_length: int) -> str:
    """Strip markup and surrounding whitespace, then cap the length."""
    return _HTML_TAG.sub("", raw).strip()[:max_length]
