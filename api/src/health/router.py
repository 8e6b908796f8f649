"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from src.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])

# Services the lifespan wires once Cassandra is reachable
REQUIRED_SERVICES = (
    "course_service",
    "progress_service",
    "quiz_service",
    "certificate_service",
    "notification_service",
)


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check: checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness check: 503 until storage-backed services are wired."""
    settings = get_settings()
    missing = [
        name for name in REQUIRED_SERVICES if getattr(request.app.state, name, None) is None
    ]
    notification_service = getattr(request.app.state, "notification_service", None)

    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        if missing
        else status.HTTP_200_OK,
        content={
            "status": "not_ready" if missing else "ready",
            "environment": settings.environment,
            "missing_services": missing,
            "realtime": bool(notification_service and notification_service.redis),
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
