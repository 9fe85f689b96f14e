"""Serving stored objects back to their public URLs.

Registered last: its catch-all path would otherwise shadow every GET route.
"""

from datetime import timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from repo_analyzer.api.deps import get_upload_service
from repo_analyzer.models.upload import ErrorResponse
from repo_analyzer.services.upload import UploadService

router = APIRouter(tags=["objects"])


@router.get("/{object_path:path}", responses={404: {"model": ErrorResponse}})
async def get_object(
    object_path: str,
    bucket: Optional[str] = Query(None),
    service: UploadService = Depends(get_upload_service),
) -> Response:
    """Return the raw bytes of a stored object."""
    stored = await service.fetch(object_path, bucket)

    headers = {"Content-Length": str(stored.size_bytes)}
    if stored.etag:
        headers["ETag"] = f'"{stored.etag}"'
    if stored.last_modified:
        last_modified = stored.last_modified.astimezone(timezone.utc)
        headers["Last-Modified"] = last_modified.strftime("%a, %d %b %Y %H:%M:%S GMT")

    return Response(content=stored.data, media_type=stored.content_type, headers=headers)
