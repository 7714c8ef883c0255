"""Request intake: turn a free-text query into at most one pending job."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from whodies.core.config import settings
from whodies.ingestion.llm import TextGenerator, is_real_movie_title
from whodies.models.ingestion import IngestionQueue
from whodies.models.movie import Movie
from whodies.services import movie_service, queue_service
from whodies.utils.query import parse_query_with_year, sanitize_query

ACCEPTED_MESSAGE = "Okay, we'll check on that!"
EXISTING_MESSAGE = "This movie is already in our database!"

logger = logging.getLogger("whodies.services.request")


class InvalidQueryError(ValueError):
    pass


@dataclass
class RequestOutcome:
    message: str
    existing_movie: Movie | None = None
    job: IngestionQueue | None = None

    @property
    def queued(self) -> bool:
        return self.job is not None


async def submit_request(
    session: AsyncSession, raw_query: str, *, generator: TextGenerator | None = None
) -> RequestOutcome:
    """Queue a movie request unless it is already catalogued or already queued.

    Both suppressions answer with the same success message a new request gets,
    so callers cannot tell a duplicate from a fresh submission.
    """
    query = sanitize_query(raw_query, max_length=settings.max_query_length)
    if not query:
        raise InvalidQueryError("Query cannot be empty")
    logger.info('Received movie request: "%s"', query)

    title, year = parse_query_with_year(query)
    existing = await movie_service.find_existing_title(session, title, year)
    if existing is not None:
        logger.info('Movie already exists: "%s" (tmdb_id: %s)', existing.title, existing.tmdb_id)
        return RequestOutcome(message=EXISTING_MESSAGE, existing_movie=existing)

    active = await queue_service.find_active_query(session, query)
    if active is not None:
        logger.info('Query "%s" already queued as job #%s (%s)', query, active.id, active.status.value)
        return RequestOutcome(message=ACCEPTED_MESSAGE)

    # The verdict is informational; unlikely titles are still queued.
    if not await is_real_movie_title(query, generator):
        logger.info('Title check doubts "%s"; queueing anyway', query)

    job = await queue_service.enqueue(session, query=query, year=year)
    logger.info('Added to ingestion queue: id=%s, query="%s"', job.id, query)
    return RequestOutcome(message=ACCEPTED_MESSAGE, job=job)
