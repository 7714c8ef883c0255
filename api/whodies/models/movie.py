"""Catalog models: movies and the character deaths recorded for them."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from whodies.db.base_class import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Movie(Base):
    """Canonical catalog entry keyed by its TMDB identifier."""
    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmdb_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    # Multiple directors are stored comma-joined.
    director: Mapped[str] = mapped_column(String(500), nullable=False)
    tagline: Mapped[str | None] = mapped_column(Text)
    poster_path: Mapped[str | None] = mapped_column(String(1024))
    runtime: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mpaa_rating: Mapped[str] = mapped_column(String(16), nullable=False, default="NR")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    deaths: Mapped[list["Death"]] = relationship(
        back_populates="movie", cascade="all, delete-orphan", passive_deletes=True, order_by="Death.id"
    )


class Death(Base):
    """A single character death; the full set is replaced on every ingestion."""
    __tablename__ = "deaths"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movie_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("movies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    character: Mapped[str] = mapped_column(Text, nullable=False)
    time_of_death: Mapped[str] = mapped_column(Text, nullable=False)
    cause: Mapped[str] = mapped_column(Text, nullable=False)
    killed_by: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_ambiguous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    movie: Mapped[Movie] = relationship(back_populates="deaths")
