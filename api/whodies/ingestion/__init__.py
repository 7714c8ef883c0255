"""Scrape source registry."""

from __future__ import annotations

from typing import Dict

from whodies.ingestion.base import BaseSource
from whodies.ingestion.fandom import FandomSource
from whodies.ingestion.spoiler import MovieSpoilerSource
from whodies.ingestion.wikipedia import WikipediaSource

# Plot sources in the order they are consulted.
PLOT_SOURCES = ("wikipedia", "spoiler")

_SOURCES: Dict[str, BaseSource] = {}


def get_source(source: str) -> BaseSource:
    """Return a shared source instance for the given source name."""
    key = source.lower()
    if key not in _SOURCES:
        if key == "fandom":
            _SOURCES[key] = FandomSource()
        elif key == "wikipedia":
            _SOURCES[key] = WikipediaSource()
        elif key == "spoiler":
            _SOURCES[key] = MovieSpoilerSource()
        else:
            raise ValueError(f"Unsupported source {source}")
    return _SOURCES[key]
