"""Main application entrypoint for the Repo Analyzer gateway."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from repo_analyzer.api.errors import HTTPErrorLoggingMiddleware, register_exception_handlers
from repo_analyzer.api.v1 import routes_health, routes_objects
from repo_analyzer.api.v1.routes_jobs import (
    method_guard_router as jobs_method_guard,
    router as jobs_router,
)
from repo_analyzer.api.v1.routes_upload import (
    method_guard_router as upload_method_guard,
    router as upload_router,
)
from repo_analyzer.core.config import Settings, settings as default_settings
from repo_analyzer.core.logging import setup_logging
from repo_analyzer.services.analysis import AnalysisTask, BackgroundAnalysisRunner, load_task
from repo_analyzer.services.jobs import JobRegistry
from repo_analyzer.services.keys import KeyGenerator
from repo_analyzer.services.upload import UploadService
from repo_analyzer.storage.base import ObjectStore
from repo_analyzer.storage.factory import get_object_store

logger = logging.getLogger(__name__)


async def reap_expired_jobs(registry: JobRegistry, ttl_seconds: int, interval_seconds: int) -> None:
    """Periodically evict finished jobs older than the TTL."""
    while True:
        await asyncio.sleep(interval_seconds)
        registry.evict_expired(ttl_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    reaper: Optional[asyncio.Task] = None
    if settings.JOB_TTL_SECONDS > 0:
        reaper = asyncio.create_task(
            reap_expired_jobs(
                app.state.job_registry,
                settings.JOB_TTL_SECONDS,
                settings.JOB_REAPER_INTERVAL_SECONDS,
            )
        )

    logger.info(f"{settings.SERVICE_NAME} running on port {settings.PORT}")
    logger.info(f"Upload endpoint: http://localhost:{settings.PORT}/upload")
    try:
        yield
    finally:
        if reaper is not None:
            reaper.cancel()
            await asyncio.gather(reaper, return_exceptions=True)
        await app.state.upload_service.drain()
        await app.state.analysis_runner.shutdown()
        app.state.job_registry.close()
        app.state.object_store.close()
        logger.info("Shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ObjectStore] = None,
    analysis_task: Optional[AnalysisTask] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-loaded singleton
        store: Object store to use instead of the one named by STORAGE_BACKEND
        analysis_task: Task run for each submitted analysis; overrides ANALYSIS_TASK

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    if settings is None:
        settings = default_settings

    # Initialize logging first
    setup_logging(settings)

    if settings.AUTH_DISABLED:
        logger.warning(
            "AUTH_DISABLED is set: x-api-key is NOT checked. Never run this configuration in production."
        )
    elif not settings.API_KEY:
        logger.warning("API_KEY is empty: every authenticated request will be rejected")

    if store is None:
        store = get_object_store(settings)
    registry = JobRegistry()
    if analysis_task is None and settings.ANALYSIS_TASK:
        analysis_task = load_task(settings.ANALYSIS_TASK)

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.object_store = store
    app.state.job_registry = registry
    app.state.upload_service = UploadService(
        store=store,
        default_bucket=settings.STORAGE_BUCKET,
        default_region=settings.STORAGE_REGION,
        max_upload_bytes=settings.max_upload_bytes,
        storage_timeout=settings.STORAGE_TIMEOUT_SECONDS,
        key_generator=KeyGenerator(prefix=settings.KEY_PREFIX),
    )
    app.state.analysis_runner = BackgroundAnalysisRunner(registry, analysis_task)

    app.add_middleware(HTTPErrorLoggingMiddleware)
    register_exception_handlers(app)

    # Register routers; the object catch-all must stay last
    app.include_router(routes_health.router, tags=["health"])
    app.include_router(upload_router)
    app.include_router(upload_method_guard)
    app.include_router(jobs_method_guard)
    app.include_router(jobs_router)
    app.include_router(routes_objects.router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "repo_analyzer.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=default_settings.PORT,
        log_config=None,
    )
