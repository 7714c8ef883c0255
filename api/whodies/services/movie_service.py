"""Catalog reads and the transactional movie + deaths writer.

Invariants:
- A movie's deaths are always the set from its most recent ingestion.
- The movie upsert, death replacement, and job completion commit together.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from whodies.ingestion.base import ExtractedDeath, MovieMetadata
from whodies.models.ingestion import IngestionQueue, IngestionStatus
from whodies.models.movie import Death, Movie
from whodies.utils.datetime import utcnow

logger = logging.getLogger("whodies.services.movie")


class JobStateError(RuntimeError):
    """The job left the processing state while its movie was being written."""


async def get_movie_by_tmdb_id(session: AsyncSession, tmdb_id: int) -> Movie | None:
    return await session.scalar(
        select(Movie)
        .options(selectinload(Movie.deaths))
        .where(Movie.tmdb_id == tmdb_id)
        .execution_options(populate_existing=True)
    )


async def movie_exists(session: AsyncSession, tmdb_id: int) -> bool:
    return (await session.scalar(select(Movie.id).where(Movie.tmdb_id == tmdb_id))) is not None


async def find_existing_title(session: AsyncSession, title: str, year: int | None = None) -> Movie | None:
    """Catalog movie whose title matches case-insensitively, optionally pinned to a year."""
    stmt = select(Movie).where(func.lower(Movie.title) == title.strip().lower())
    if year:
        stmt = stmt.where(Movie.year == year)
    return await session.scalar(stmt.order_by(Movie.id).limit(1))


def _apply_metadata(movie: Movie, metadata: MovieMetadata) -> None:
    movie.title = metadata.title
    movie.year = metadata.year
    movie.director = metadata.director
    movie.tagline = metadata.tagline
    movie.poster_path = metadata.poster_path
    movie.runtime = metadata.runtime
    movie.mpaa_rating = metadata.mpaa_rating


async def write_movie_with_deaths(
    session: AsyncSession,
    job_id: int,
    metadata: MovieMetadata,
    deaths: Sequence[ExtractedDeath],
) -> Movie:
    """Upsert the movie, replace its deaths, and complete the job in one transaction.

    Any failure rolls everything back so no movie is left half-written and the
    job stays in processing for the caller to fail.
    """
    try:
        movie = await session.scalar(select(Movie).where(Movie.tmdb_id == metadata.tmdb_id))
        if movie is None:
            movie = Movie(tmdb_id=metadata.tmdb_id)
            _apply_metadata(movie, metadata)
            session.add(movie)
        else:
            _apply_metadata(movie, metadata)
            movie.updated_at = utcnow()
        await session.flush()

        await session.execute(delete(Death).where(Death.movie_id == movie.id))
        session.add_all(
            [
                Death(
                    movie_id=movie.id,
                    character=death.character,
                    time_of_death=death.time_of_death,
                    cause=death.cause,
                    killed_by=death.killed_by,
                    context=death.context,
                    is_ambiguous=death.is_ambiguous,
                )
                for death in deaths
            ]
        )

        completed = await session.execute(
            update(IngestionQueue)
            .where(IngestionQueue.id == job_id, IngestionQueue.status == IngestionStatus.PROCESSING)
            .values(status=IngestionStatus.COMPLETE, tmdb_id=metadata.tmdb_id, completed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if completed.rowcount != 1:
            raise JobStateError(f"Job #{job_id} is no longer processing")
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info('Saved "%s" (%s) with %d deaths', metadata.title, metadata.year, len(deaths))
    return movie
