"""Decide whether a scraped page describes the requested release of a title.

Only the page header is inspected. Remakes and originals are usually named in
later "Legacy" or "Production" sections, so scanning the whole page would let a
same-titled film through.
"""

from __future__ import annotations

import logging
import re

from whodies.core.config import settings
from whodies.ingestion.base import UNKNOWN

MIN_CONTENT_LENGTH = 50
MIN_SURNAME_LENGTH = 4

logger = logging.getLogger("whodies.ingestion.disambiguation")


def director_tokens(director: str) -> list[tuple[str, str]]:
    """(full name, surname) pairs for each credited director, lowercased."""
    tokens: list[tuple[str, str]] = []
    for name in director.split(","):
        cleaned = name.strip().lower()
        if not cleaned or cleaned == UNKNOWN.lower():
            continue
        tokens.append((cleaned, re.split(r"\s+", cleaned)[-1]))
    return tokens


def validate(content: str, year: int, director: str, *, window: int | None = None) -> bool:
    """True when the header mentions the release year or a director.

    Year OR director is enough; requiring both rejects too many correct pages.
    Surnames of three letters or fewer are ignored to avoid incidental matches.
    """
    if not content or len(content) < MIN_CONTENT_LENGTH:
        return False
    header = content.lower()[: window if window is not None else settings.disambiguation_window_chars]

    if year > 0 and str(year) in header:
        return True
    for full_name, surname in director_tokens(director):
        if full_name in header:
            return True
        if len(surname) >= MIN_SURNAME_LENGTH and surname in header:
            return True

    logger.info(
        'Disambiguation failed: no mention of year %s or director "%s" in the first %d chars',
        year,
        director,
        len(header),
    )
    return False
