"""Analysis job submission and status routes."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from repo_analyzer.api.deps import get_analysis_runner, get_job_registry, require_api_key
from repo_analyzer.core.exceptions import MethodError, PayloadError
from repo_analyzer.models.jobs import AnalyzeResponse, JobStatusResponse
from repo_analyzer.models.upload import ErrorResponse
from repo_analyzer.services.analysis import AnalysisRunner
from repo_analyzer.services.jobs import JobRegistry

router = APIRouter(prefix="/api", tags=["analysis"], dependencies=[Depends(require_api_key)])
method_guard_router = APIRouter(prefix="/api", include_in_schema=False)
logger = logging.getLogger(__name__)


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={401: {"model": ErrorResponse}, 405: {"model": ErrorResponse}},
)
async def analyze(
    payload: Optional[Dict[str, Any]] = Body(None),
    runner: AnalysisRunner = Depends(get_analysis_runner),
) -> AnalyzeResponse:
    """Queue an analysis; poll /api/status for its progress."""
    job_id = await runner.submit(payload or {})
    logger.info(f"Analysis queued: job_id={job_id}", extra={"job_id": job_id})
    return AnalyzeResponse(job_id=job_id)


@router.get(
    "/status",
    response_model=JobStatusResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def job_status(
    job_id: Optional[str] = Query(None),
    registry: JobRegistry = Depends(get_job_registry),
) -> JobStatusResponse:
    """Report the current state of an analysis job."""
    if not job_id or not job_id.strip():
        raise PayloadError("Missing job_id parameter")
    return JobStatusResponse.from_job(registry.get(job_id.strip()))


@method_guard_router.api_route("/analyze", methods=["GET", "PUT", "PATCH", "DELETE"])
async def analyze_wrong_method() -> None:
    """Answer 405 before the object catch-all can claim GET /api/analyze."""
    raise MethodError("Method not allowed. Use POST.")
