"""FastAPI exception handlers for contact sync errors.

Response format::

    {
        "error": "ErrorClassName",
        "code": "ERROR_CODE",
        "detail": "Human-readable error message",
        "details": {...}  # optional
    }
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from contactsync.core.errors import ContactSyncError, ErrorCode, RateLimitedError

logger = logging.getLogger(__name__)


async def contact_sync_error_handler(request: Request, exc: ContactSyncError) -> JSONResponse:
    """Map a ContactSyncError to its HTTP status and JSON body."""
    status_code = exc.status_code

    if status_code >= 500:
        logger.error(
            "Server error: %s (code=%s, status=%d)",
            exc.message,
            exc.code.value,
            status_code,
            exc_info=exc.cause if exc.cause else exc,
        )
    else:
        logger.warning(
            "Client error: %s (code=%s, status=%d)",
            exc.message,
            exc.code.value,
            status_code,
        )

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and query params as INVALID_FORMAT."""
    logger.warning(
        "Request validation failed on %s %s",
        request.method,
        request.url.path,
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": "InvalidFormatError",
            "code": ErrorCode.INVALID_FORMAT.value,
            "detail": "Invalid request",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all so unexpected failures still return the standard shape."""
    logger.exception(
        "Unhandled exception for %s %s",
        request.method,
        request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalError",
            "code": "UNKNOWN",
            "detail": "An unexpected error occurred",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ContactSyncError, contact_sync_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
