"""Ingestion queue model tracking each movie request through its lifecycle."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from whodies.db.base_class import Base


class IngestionStatus(str, enum.Enum):
    """Lifecycle states for queued ingestion requests."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({IngestionStatus.COMPLETE, IngestionStatus.FAILED})


class IngestionQueue(Base):
    """One queued ingestion request. Rows are never deleted."""

    __tablename__ = "ingestion_queue"
    __table_args__ = (
        Index("ix_ingestion_queue_status_created_at", "status", "created_at"),
        Index("ix_ingestion_queue_tmdb_id_status", "tmdb_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[IngestionStatus] = mapped_column(
        Enum(
            IngestionStatus,
            name="ingestion_status",
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
        ),
        default=IngestionStatus.PENDING,
        nullable=False,
    )
    tmdb_id: Mapped[int | None] = mapped_column(Integer)
    failure_reason: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
