"""Service-layer helpers for the ingestion pipeline and API."""
from . import (
    ingestion_service,
    movie_service,
    queue_service,
    request_service,
)

__all__ = [
    "ingestion_service",
    "movie_service",
    "queue_service",
    "request_service",
]
