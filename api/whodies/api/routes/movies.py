from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from whodies.api.deps import get_db
from whodies.ingestion.llm import get_generator
from whodies.schema.ingest import MovieRequest, MovieRequestResponse
from whodies.schema.movie import MovieDetail, MovieSummary
from whodies.services import movie_service, request_service
from whodies.services.task_queue import task_queue

router = APIRouter()


@router.post("/request", response_model=MovieRequestResponse)
async def request_movie(
    payload: MovieRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db),
) -> MovieRequestResponse:
    try:
        outcome = await request_service.submit_request(session, payload.query, generator=get_generator())
    except request_service.InvalidQueryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if outcome.queued:
        background_tasks.add_task(task_queue.dispatch_ingestion, outcome.job.id)
    return MovieRequestResponse(
        success=True,
        message=outcome.message,
        existing_movie=MovieSummary.model_validate(outcome.existing_movie) if outcome.existing_movie else None,
        job_id=outcome.job.id if outcome.job else None,
    )


@router.get("/{tmdb_id}", response_model=MovieDetail)
async def get_movie(tmdb_id: int, session: AsyncSession = Depends(get_db)) -> MovieDetail:
    if tmdb_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid movie ID")
    movie = await movie_service.get_movie_by_tmdb_id(session, tmdb_id)
    if not movie:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Movie not found")
    return MovieDetail.model_validate(movie)
