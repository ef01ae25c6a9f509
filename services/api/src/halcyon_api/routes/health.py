"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from halcyon_shared.config import get_settings
from halcyon_shared.db import DatabaseConnection
from halcyon_shared.logging import get_logger

from ..dependencies.providers import get_database

logger = get_logger(__name__)

router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        description="Overall health status"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Current server timestamp (UTC)"
    )
    version: str = Field(
        description="Service version"
    )
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual component health checks"
    )


class ReadinessStatus(BaseModel):
    """Readiness check response model."""

    ready: bool = Field(
        description="Whether the service is ready to accept requests"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Current server timestamp (UTC)"
    )
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual readiness checks"
    )


def provider_checks() -> dict[str, bool]:
    """Which providers have credentials configured."""
    settings = get_settings()
    return {
        "replicate": bool(settings.replicate.api_token),
        "openai": bool(settings.openai.api_key),
        "shotstack": bool(settings.shotstack.api_key),
        "blob_storage": settings.storage.is_configured,
    }


async def _database_reachable(db: DatabaseConnection) -> bool:
    try:
        await db.connect()
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        return False
    return True


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health Check",
    description="Check if the service is running and get version info with dependency status",
)
async def health_check(
    request: Request,
    db: DatabaseConnection = Depends(get_database),
) -> HealthStatus:
    """Liveness check with dependency status.

    Missing provider credentials are reported but do not degrade the
    service; only the database does.
    """
    version = getattr(request.app, "version", "0.1.0")

    checks = {"api": True}
    overall_status = "healthy"

    db_initialized = getattr(request.app.state, "db_initialized", False)
    checks["database"] = db_initialized
    if db_initialized:
        checks["database_connection"] = await _database_reachable(db)
        if not checks["database_connection"]:
            overall_status = "degraded"
    else:
        overall_status = "degraded"

    checks.update(provider_checks())

    return HealthStatus(
        status=overall_status,
        version=version,
        checks=checks,
    )


@router.get(
    "/health/ready",
    response_model=ReadinessStatus,
    summary="Readiness Check",
    description="Check if the service is ready to accept requests",
)
async def readiness_check(
    request: Request,
    db: DatabaseConnection = Depends(get_database),
) -> ReadinessStatus:
    """Readiness check: ready once the database is initialized and reachable."""
    checks = {"api": True}

    db_initialized = getattr(request.app.state, "db_initialized", False)
    checks["database_init"] = db_initialized
    all_ready = db_initialized

    if db_initialized:
        checks["database_connection"] = await _database_reachable(db)
        all_ready = checks["database_connection"]

    return ReadinessStatus(
        ready=all_ready,
        checks=checks,
    )
