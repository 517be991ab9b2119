"""Exception handlers rendering the API error envelope."""

from datetime import datetime, timezone
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    AdmissionRejected,
    ConflictError,
    NotFoundError,
    SecurityError,
    StorageError,
    UploadServiceError,
    ValidationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Checked in order; subclasses must come before their bases.
STATUS_CODES: Dict[Type[UploadServiceError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    AdmissionRejected: status.HTTP_429_TOO_MANY_REQUESTS,
    SecurityError: status.HTTP_403_FORBIDDEN,
    StorageError: status.HTTP_403_FORBIDDEN,
}


def status_code_for(exc: UploadServiceError) -> int:
    for exc_type, code in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(request: Request, code: str, message: str) -> dict:
    return {
        "error": {"code": code, "message": message},
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }


async def upload_service_error_handler(
    request: Request, exc: UploadServiceError
) -> JSONResponse:
    status_code = status_code_for(exc)
    headers = None
    if isinstance(exc, AdmissionRejected):
        headers = {"Retry-After": str(exc.retry_after)}

    if status_code >= 500:
        logger.error("Upload service error", path=request.url.path, exc_info=exc)
    else:
        logger.warning(
            "Request failed",
            path=request.url.path,
            code=exc.code,
            status_code=status_code,
            message=exc.message,
        )

    return JSONResponse(
        status_code=status_code,
        content=error_body(request, exc.code, exc.message),
        headers=headers,
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, ValidationError.code, messages or "Invalid request"),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "INTERNAL_SERVER_ERROR", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UploadServiceError, upload_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
