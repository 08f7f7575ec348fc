"""Health check API router."""

from fastapi import APIRouter, HTTPException, status

from dbsnapshots.core.config import get_settings
from dbsnapshots.core.errors import ConfigurationError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/ready")
def ready() -> dict[str, object]:
    """Ready once the configuration loads and declares at least one plan."""
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    if not settings.plans:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="No snapshot plans are configured")
    return {"status": "ready", "environment": settings.environment, "plans": len(settings.plans)}
