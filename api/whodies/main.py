"""FastAPI application entrypoint and health reporting."""

from typing import Any

from fastapi import FastAPI

from whodies.api.router import api_router
from whodies.core.config import settings
from whodies.ingestion.observability import source_monitor
from whodies.jobs.schedule_registry import ensure_schedules

app = FastAPI(title=settings.app_name)
app.include_router(api_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _register_schedules() -> None:
    """Register scheduled jobs on startup."""
    ensure_schedules()


def _open_circuits(snapshot: dict[str, Any]) -> list[dict[str, Any]]:
    issues: list[dict[str, Any]] = []
    for source, payload in snapshot.items():
        remaining = float(payload.get("circuit", {}).get("remaining_cooldown") or 0.0)
        if remaining > 0:
            issues.append({"source": source, "reason": "circuit_open", "remaining_cooldown": remaining})
    return issues


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health() -> dict[str, Any]:
    """Liveness plus any scrape sources currently cooling down."""
    issues = _open_circuits(await source_monitor.snapshot())
    return {"status": "ok" if not issues else "degraded", "issues": issues}
