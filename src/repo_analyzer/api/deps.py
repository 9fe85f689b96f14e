"""Request dependencies: shared components and the API key gate."""

import hmac
import logging
from typing import Optional

from fastapi import Header, Request

from repo_analyzer.core.config import Settings
from repo_analyzer.core.exceptions import AuthError
from repo_analyzer.services.analysis import AnalysisRunner
from repo_analyzer.services.jobs import JobRegistry
from repo_analyzer.services.upload import UploadService

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


def get_job_registry(request: Request) -> JobRegistry:
    return request.app.state.job_registry


def get_analysis_runner(request: Request) -> AnalysisRunner:
    return request.app.state.analysis_runner


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
) -> None:
    """Reject the request unless ``x-api-key`` matches API_KEY.

    AUTH_DISABLED skips the check entirely. An empty API_KEY with auth
    enabled rejects everything.
    """
    settings = get_settings(request)
    if settings.AUTH_DISABLED:
        logger.debug(f"Auth bypassed for {request.method} {request.url.path}")
        return

    if not x_api_key or not settings.API_KEY:
        raise AuthError("Unauthorized")
    if not hmac.compare_digest(x_api_key.encode(), settings.API_KEY.encode()):
        raise AuthError("Unauthorized")
