"""Base primitives shared by the metadata resolver, scrapers, and extractor."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from whodies.core.config import settings

NOT_APPLICABLE = "N/A"
UNKNOWN = "Unknown"
NOT_RATED = "NR"


@dataclass(slots=True)
class MovieCandidate:
    """Top-ranked search hit for a free-text query."""
    tmdb_id: int
    title: str


@dataclass(slots=True)
class MovieMetadata:
    """Normalized movie metadata combined from the TMDB detail endpoints."""
    tmdb_id: int
    title: str
    year: int
    director: str
    tagline: str | None
    poster_path: str | None
    runtime: int
    mpaa_rating: str


@dataclass(slots=True)
class ExtractedDeath:
    character: str
    time_of_death: str = UNKNOWN
    cause: str = UNKNOWN
    killed_by: str = NOT_APPLICABLE
    context: str = ""
    is_ambiguous: bool = False


@dataclass(slots=True)
class ScrapedResult:
    """One source's accepted page.

    `content` is the section used for extraction; `full_text` is the page
    text used for disambiguation.
    """
    content: str
    full_text: str


@dataclass(slots=True)
class ScrapedContent:
    """Everything gathered for one movie; lives for a single pipeline run."""
    parsed_deaths: list[ExtractedDeath] = field(default_factory=list)
    wiki_content: str = ""
    plot_summary: str = ""

    @property
    def has_any_content(self) -> bool:
        return bool(self.wiki_content) or bool(self.plot_summary.strip())


class BaseSource:
    """A page source tried under several title spellings until one answers."""
    source_name: str

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.transport = transport

    @property
    def headers(self) -> dict[str, str]:
        return {"User-Agent": settings.scraper_user_agent}

    def title_variants(self, title: str, year: int | None) -> list[str]:
        """Page names to try, most specific first."""
        raise NotImplementedError

    async def fetch_variant(self, variant: str) -> ScrapedResult | None:
        """Fetch and extract one page variant, or None when it has nothing usable."""
        raise NotImplementedError
