"""movie catalog and ingestion queue

Revision ID: 20260207_000001
Revises:
Create Date: 2026-02-07 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20260207_000001"
down_revision = None
branch_labels = None
depends_on = None

ingestion_status_enum = postgresql.ENUM(
    "pending",
    "processing",
    "complete",
    "failed",
    name="ingestion_status",
)


def upgrade() -> None:
    op.create_table(
        "movies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tmdb_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("director", sa.String(length=500), nullable=False),
        sa.Column("tagline", sa.Text(), nullable=True),
        sa.Column("poster_path", sa.String(length=1024), nullable=True),
        sa.Column("runtime", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mpaa_rating", sa.String(length=16), nullable=False, server_default="NR"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("tmdb_id", name="uq_movies_tmdb_id"),
    )
    op.create_index("ix_movies_title", "movies", ["title"], unique=False)

    op.create_table(
        "deaths",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("movie_id", sa.Integer(), sa.ForeignKey("movies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("character", sa.Text(), nullable=False),
        sa.Column("time_of_death", sa.Text(), nullable=False),
        sa.Column("cause", sa.Text(), nullable=False),
        sa.Column("killed_by", sa.Text(), nullable=False),
        sa.Column("context", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_ambiguous", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_deaths_movie_id", "deaths", ["movie_id"], unique=False)

    op.create_table(
        "ingestion_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("query", sa.Text(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("status", ingestion_status_enum, nullable=False, server_default="pending"),
        sa.Column("tmdb_id", sa.Integer(), nullable=True),
        sa.Column("failure_reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_ingestion_queue_status_created_at", "ingestion_queue", ["status", "created_at"], unique=False
    )
    op.create_index("ix_ingestion_queue_tmdb_id_status", "ingestion_queue", ["tmdb_id", "status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_ingestion_queue_tmdb_id_status", table_name="ingestion_queue")
    op.drop_index("ix_ingestion_queue_status_created_at", table_name="ingestion_queue")
    op.drop_table("ingestion_queue")
    ingestion_status_enum.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_deaths_movie_id", table_name="deaths")
    op.drop_table("deaths")
    op.drop_index("ix_movies_title", table_name="movies")
    op.drop_table("movies")
