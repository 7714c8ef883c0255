"""API router composition for all route groups."""

from fastapi import APIRouter

from .routes import cron, movies, ops

api_router = APIRouter()
api_router.include_router(movies.router, prefix="/movies", tags=["movies"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
api_router.include_router(ops.router, prefix="/ops", tags=["ops"])
