"""Health check endpoint."""

from fastapi import APIRouter, Depends

from repo_analyzer.api.deps import get_settings
from repo_analyzer.core.config import Settings

router = APIRouter()


@router.get("/")
async def root(settings: Settings = Depends(get_settings)) -> dict:
    """Welcome message."""
    return {
        "message": "Welcome to Repo Analyzer API!",
        "version": settings.SERVICE_VERSION,
        "status": "success",
    }


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict:
    """Health check endpoint.

    Unauthenticated and free of backend calls so probes stay fast.

    Returns:
        dict: Health status response with status, service, and version fields
    """
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }
