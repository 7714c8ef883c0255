"""Import all models here for Alembic autogenerate."""

from whodies.db.base_class import Base
from whodies.models import ingestion, movie  # noqa: F401

__all__ = ["Base"]
