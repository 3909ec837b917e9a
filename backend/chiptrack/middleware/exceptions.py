"""Custom exception handlers for consistent error responses.

Every error leaves the API in the same envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ChipTrackException(Exception):
    """Base exception for chiptrack application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Union[dict, list, None] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class MissingFieldsError(ChipTrackException):
    """Submitted row lacks one or more required columns."""

    def __init__(self, fields: list[str]):
        super().__init__(
            message="Missing required fields.",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="MISSING_FIELDS",
            details={"fields": fields},
        )


class LedgerWriteError(ChipTrackException):
    """The ledger workbook could not be updated."""

    def __init__(self, message: str = "Unable to save data."):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="LEDGER_WRITE_FAILED",
        )


def error_envelope(
    status_code: int,
    code: str,
    message: str,
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


async def chiptrack_exception_handler(request: Request, exc: ChipTrackException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("%s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc.message)
    return error_envelope(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Routing errors (404, 405) in the same envelope."""
    if exc.status_code >= 500:
        logger.error("%s %s -> HTTP %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return error_envelope(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Bodies FastAPI cannot parse at all, e.g. a JSON array instead of an object."""
    logger.warning("%s %s -> malformed request body", request.method, request.url.path)
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return error_envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Malformed request body.",
        {"errors": errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s -> unhandled error", request.method, request.url.path, exc_info=exc)
    return error_envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred.",
    )


def register_exception_handlers(app):
    app.add_exception_handler(ChipTrackException, chiptrack_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
