"""
Health Check Endpoints

Probes for the scheduler and the container platform. Readiness covers
both stores the dispatcher cannot run without and reports the pending
backlog so a stalled cron trigger is visible from outside.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from deskbot.api.deps import get_container
from deskbot.bootstrap import Container
from deskbot.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Record process start. Called once from the lifespan."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    app: str
    environment: str


class ReadyResponse(BaseModel):
    """Dependency status plus queue backlog."""
    status: str
    timestamp: datetime
    checks: dict[str, str]
    pending_items: Optional[int] = None


class LiveResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


@router.get("", response_model=HealthResponse, summary="Process is up")
async def health() -> HealthResponse:
    """Always 200 while the process runs. Dependencies are not checked."""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        app=settings.app_name,
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    responses={503: {"description": "Database or Redis unavailable"}},
)
async def ready(container: Container = Depends(get_container)):
    """
    Check the database and Redis.

    Redis is not optional here: without it no slot can be locked and every
    booking would fail. Returns 503 when either check fails.
    """
    db_ok = await container.db.check_health()
    redis_ok = await container.redis.check_health()
    checks = {
        "database": "ok" if db_ok else "failed",
        "redis": "ok" if redis_ok else "failed",
    }

    pending = await container.dispatcher.queue.count_pending() if db_ok else None

    response = ReadyResponse(
        status="ready" if db_ok and redis_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
        pending_items=pending,
    )

    if not (db_ok and redis_ok):
        logger.warning(f"Readiness check failed: {checks}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get("/live", response_model=LiveResponse, summary="Liveness probe")
async def live() -> LiveResponse:
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )
