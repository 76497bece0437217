"""
Custom exception hierarchy for ANIMA.log.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Collaborator failures are split so callers can tell "AI unavailable" from
"malformed AI output" from "storage unavailable". Historical
inconsistencies (missing symbol on decrement, missing edge on release)
are never exceptions; the services log them and carry on.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from anima.core.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AnimaException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


def _debug_details(detail: str | None) -> dict[str, Any]:
    """Internal detail is only exposed when DEBUG is on."""
    if detail and settings.DEBUG:
        return {"debug": detail}
    return {}


class EntryNotFoundError(AnimaException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int):
        super().__init__(
            message=f"Entry {entry_id} not found.",
            details={"id": entry_id},
        )


class SymbolNotFoundError(AnimaException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SYMBOL_NOT_FOUND"

    def __init__(self, symbol_id: int):
        super().__init__(
            message=f"Symbol {symbol_id} not found.",
            details={"id": symbol_id},
        )


class AIUnavailableError(AnimaException):
    """The AI collaborator could not be reached or refused the request."""
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "AI_UNAVAILABLE"

    def __init__(self, detail: str | None = None):
        super().__init__(
            message="AI analysis is currently unavailable.",
            details=_debug_details(detail),
        )


class MalformedAIOutputError(AnimaException):
    """The AI collaborator answered, but not with a usable analysis."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "MALFORMED_AI_OUTPUT"

    def __init__(self, detail: str | None = None):
        super().__init__(
            message="AI returned an analysis that could not be parsed.",
            details=_debug_details(detail),
        )


class StorageUnavailableError(AnimaException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_UNAVAILABLE"

    def __init__(self, detail: str | None = None):
        super().__init__(
            message="Storage is currently unavailable.",
            details=_debug_details(detail),
        )


class AnalysisFailedError(AnimaException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "ANALYSIS_FAILED"

    def __init__(self, detail: str | None = None):
        super().__init__(
            message="Failed to analyze entry.",
            details=_debug_details(detail),
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def anima_exception_handler(request: Request, exc: AnimaException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content: dict[str, Any] = {
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred.",
    }
    if settings.DEBUG:
        content["details"] = {"debug": str(exc)}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )
