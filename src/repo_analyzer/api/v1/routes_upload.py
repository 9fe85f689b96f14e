"""Upload API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from repo_analyzer.api.deps import get_upload_service, require_api_key
from repo_analyzer.core.exceptions import MethodError
from repo_analyzer.models.upload import ErrorResponse, UploadResponse
from repo_analyzer.services.upload import UploadRequest, UploadService

router = APIRouter(tags=["upload"], dependencies=[Depends(require_api_key)])
method_guard_router = APIRouter(include_in_schema=False)
logger = logging.getLogger(__name__)


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    bucket: Optional[str] = Form(None),
    key: Optional[str] = Form(None),
    region: Optional[str] = Form(None),
    service: UploadService = Depends(get_upload_service),
) -> UploadResponse:
    """Store an uploaded file and return its public location."""
    result = await service.upload(
        UploadRequest(
            payload=file.file if file is not None else None,
            original_name=file.filename if file is not None else None,
            content_type=file.content_type if file is not None else None,
            bucket=bucket or None,
            key=key or None,
            region=region or None,
        )
    )

    return UploadResponse(
        url=result.url,
        bucket=result.bucket,
        key=result.key,
        region=result.region,
        content_type=result.content_type,
        size_bytes=result.size_bytes,
    )


@method_guard_router.api_route("/upload", methods=["GET", "PUT", "PATCH", "DELETE"])
async def upload_wrong_method() -> None:
    """Answer 405 before the object catch-all can claim GET /upload."""
    raise MethodError("Method not allowed. Use POST.")
