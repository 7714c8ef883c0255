from whodies.models.ingestion import IngestionQueue, IngestionStatus
from whodies.models.movie import Death, Movie

__all__ = ["Death", "IngestionQueue", "IngestionStatus", "Movie"]
