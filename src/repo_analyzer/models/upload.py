"""Upload data models."""

from pydantic import BaseModel


class UploadResponse(BaseModel):
    """Response model for file upload."""

    url: str
    bucket: str
    key: str
    region: str
    content_type: str
    size_bytes: int


class ErrorResponse(BaseModel):
    """Error body returned for every mapped failure."""

    error: str
    message: str
