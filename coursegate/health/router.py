"""Health check endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import ORJSONResponse

from coursegate.config import get_settings
from coursegate.core.database import AsyncCassandraConnection
from coursegate.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness() -> ORJSONResponse:
    """Readiness probe - reports the stores the access engine depends on.

    Redis is optional, so only Cassandra decides readiness: 503 without it.
    """
    settings = get_settings()
    cassandra = AsyncCassandraConnection.is_connected()
    return ORJSONResponse(
        status_code=(
            status.HTTP_200_OK if cassandra else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content={
            "status": "ready" if cassandra else "not_ready",
            "environment": settings.environment,
            "debug": settings.debug,
            "cassandra": cassandra,
            "redis": get_redis() is not None,
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
