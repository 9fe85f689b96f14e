"""Mapping of gateway errors to HTTP responses, plus error logging middleware."""

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from repo_analyzer.core.exceptions import (
    AuthError,
    GatewayError,
    InvariantError,
    MethodError,
    NotFoundError,
    PayloadError,
    StorageError,
    UploadError,
)
from repo_analyzer.core.logging import object_key_context

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[GatewayError], int] = {
    PayloadError: status.HTTP_400_BAD_REQUEST,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    MethodError: status.HTTP_405_METHOD_NOT_ALLOWED,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    UploadError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    InvariantError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: GatewayError) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in STATUS_CODES:
            return STATUS_CODES[exc_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Handle gateway exceptions."""
    status_code = status_code_for(exc)
    if isinstance(exc, InvariantError):
        logger.error(
            f"Invariant violated: {exc.message}",
            extra={"path": request.url.path},
            exc_info=exc,
        )

    if isinstance(exc, AuthError):
        return JSONResponse(
            status_code=status_code,
            content={"error": "Unauthorized", "message": exc.message},
        )

    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "message": exc.message},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Reshape framework errors (unknown route, wrong method) into the error body."""
    headers = getattr(exc, "headers", None) or {}
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        allowed = headers.get("Allow", "")
        response = await gateway_exception_handler(
            request, MethodError(f"Method not allowed. Use {allowed or 'another method'}.")
        )
        response.headers.update(headers)
        return response

    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "Not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": message},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"status": "error", "message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal Server Error", "message": str(exc) or "Unknown error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


class HTTPErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to ensure all HTTP errors are logged.

    - 4xx responses: logged at WARN level
    - 5xx responses: logged at ERROR level
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        object_key_context.set(None)

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        details = {
            "http_status": response.status_code,
            "method": request.method,
            "path": request.url.path,
            "duration_ms": duration_ms,
        }

        if 400 <= response.status_code < 500:
            logger.warning("Client error response", extra=details)
        elif response.status_code >= 500:
            logger.error("Server error response", extra=details)

        return response
