"""Health check router — liveness probe."""

from fastapi import APIRouter

from apps.api.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_liveness():
    """Liveness probe — returns 200 if the API process is running."""
    return {"status": "healthy", "service": "api", "version": settings.APP_VERSION}
