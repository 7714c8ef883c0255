from __future__ import annotations

import pytest

from whodies.core.config import Settings, settings
from whodies.jobs import schedule_registry
from whodies.jobs.ingestion import process_queue_job


def test_poller_entry_uses_configured_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "poll_interval_seconds", 300)

    (entry,) = schedule_registry._schedule_entries()

    assert entry["id"] == schedule_registry.QUEUE_POLL_JOB_ID
    assert entry["func"] is process_queue_job
    assert entry["interval"] == 300
    assert entry["queue_name"] == settings.ingestion_queue_name
    assert entry["timeout"] <= 300


def test_ensure_schedules_is_skipped_in_tests() -> None:
    assert settings.environment == "test"
    schedule_registry.ensure_schedules()


def test_settings_parse_lists_from_env_strings() -> None:
    parsed = Settings(
        worker_queue_names="ingestion, default",
        tmdb_backoff_seconds="1,2",
        llm_backoff_seconds="[0.5, 1]",
    )

    assert parsed.worker_queue_names == ["ingestion", "default"]
    assert parsed.tmdb_backoff_seconds == [1.0, 2.0]
    assert parsed.llm_backoff_seconds == [0.5, 1.0]
    assert Settings(worker_queue_names="").worker_queue_names == ["default", "ingestion"]
