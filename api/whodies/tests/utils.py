"""Shared fakes for pipeline tests."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from whodies.ingestion.base import BaseSource, MovieCandidate, MovieMetadata, ScrapedContent, ScrapedResult
from whodies.ingestion.llm import TextGenerator
from whodies.models.ingestion import IngestionQueue, IngestionStatus

JAWS = MovieMetadata(
    tmdb_id=578,
    title="Jaws",
    year=1975,
    director="Steven Spielberg",
    tagline="Don't go in the water.",
    poster_path="/jaws.jpg",
    runtime=124,
    mpaa_rating="PG",
)

JAWS_WIKITEXT = """== Victims ==
* <u>''Chrissie Watkins''</u> - Eaten by the shark off-screen
* <u>''Alex Kintner''</u> - Eaten by the shark
** Killed while swimming on a raft
* <u>''Ben Gardner''</u> - Killed by the shark
* <u>''Quint''</u> - Eaten by the shark
"""

JAWS_PAGE = (
    "Jaws is a 1975 American thriller film directed by Steven Spielberg.\n"
    + JAWS_WIKITEXT
)


class FakeResolver:
    """Stands in for TMDBClient with canned answers and call counters."""

    def __init__(
        self,
        metadata: MovieMetadata | None = JAWS,
        *,
        error: Exception | None = None,
        credentials_error: Exception | None = None,
    ) -> None:
        self.metadata = metadata
        self.error = error
        self.credentials_error = credentials_error
        self.searches: list[tuple[str, int | None]] = []
        self.metadata_calls = 0

    def check_credentials(self) -> None:
        if self.credentials_error:
            raise self.credentials_error

    async def search(self, query: str, year: int | None = None) -> MovieCandidate | None:
        self.searches.append((query, year))
        if self.error:
            raise self.error
        if self.metadata is None:
            return None
        return MovieCandidate(tmdb_id=self.metadata.tmdb_id, title=self.metadata.title)

    async def fetch_metadata(self, tmdb_id: int) -> MovieMetadata:
        self.metadata_calls += 1
        assert self.metadata is not None
        return self.metadata


class FakeScraper:
    def __init__(self, content: ScrapedContent | None = None) -> None:
        self.content = content or ScrapedContent()
        self.calls: list[tuple[str, int, str]] = []

    async def scrape(self, title: str, year: int, director: str) -> ScrapedContent:
        self.calls.append((title, year, director))
        return self.content


class FakeGenerator(TextGenerator):
    """Returns queued responses in order; exceptions in the queue are raised."""

    model = "fake-model"

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def generate(self, prompt: str, *, timeout: float) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeSource(BaseSource):
    """Source answering from a dict of variant -> result (or exception)."""

    def __init__(
        self, name: str = "fake", pages: dict[str, Any] | None = None, variants: list[str] | None = None
    ) -> None:
        super().__init__()
        self.source_name = name
        self.pages = pages or {}
        self.variants = variants or []
        self.fetched: list[str] = []

    def title_variants(self, title: str, year: int | None) -> list[str]:
        return self.variants or [title]

    async def fetch_variant(self, variant: str) -> ScrapedResult | None:
        self.fetched.append(variant)
        page = self.pages.get(variant)
        if isinstance(page, Exception):
            raise page
        return page


async def add_job(
    session: AsyncSession,
    query: str,
    *,
    year: int | None = None,
    status: IngestionStatus = IngestionStatus.PENDING,
) -> IngestionQueue:
    job = IngestionQueue(query=query, year=year, status=status)
    session.add(job)
    await session.commit()
    await session.refresh(job)
    return job
