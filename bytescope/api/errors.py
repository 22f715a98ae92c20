"""Structured error responses for the Bytescope API.

Every failure is returned in the same envelope:

    {
        "error": {
            "code": "FETCH_FAILED",
            "message": "Human-readable description",
            "details": [...optional...],
            "request_id": "abc-123"
        }
    }
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from bytescope.core.errors import (
    AggregateFailure,
    AnalysisError,
    BytecodeValidationError,
    BytescopeError,
    FetchError,
)

logger = logging.getLogger(__name__)


# ── Error Codes ──────────────────────────────────────────────────────────────


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"

    # Domain-specific
    INVALID_BYTECODE = "INVALID_BYTECODE"
    FETCH_FAILED = "FETCH_FAILED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"


# ── Error Schemas ────────────────────────────────────────────────────────────


class FieldError(BaseModel):
    field: str
    message: str
    type: str


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: list[FieldError] | list[dict[str, Any]] | None = None
    request_id: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorEnvelope


_STATUS_TO_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.VALIDATION_ERROR,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.DEPENDENCY_ERROR,
}

# Checked in order; the first matching class wins
_DOMAIN_ERRORS: list[tuple[type[BytescopeError], int, ErrorCode]] = [
    (BytecodeValidationError, 422, ErrorCode.INVALID_BYTECODE),
    (FetchError, 502, ErrorCode.FETCH_FAILED),
    (AggregateFailure, 422, ErrorCode.ANALYSIS_FAILED),
    (AnalysisError, 500, ErrorCode.ANALYSIS_FAILED),
]


def _get_request_id(request: Request) -> str | None:
    return request.headers.get("X-Request-ID")


def _respond(request: Request, status_code: int, code: str, message: str,
             details: list[Any] | None = None) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorEnvelope(
            code=code,
            message=message,
            details=details,
            request_id=_get_request_id(request),
        )
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


# ── Exception Handlers ──────────────────────────────────────────────────────


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body validation errors with per-field detail."""
    details = []
    for err in exc.errors():
        loc = err.get("loc", [])
        field = ".".join(str(part) for part in loc if part != "body")
        details.append(
            FieldError(
                field=field or "unknown",
                message=err.get("msg", "Invalid value"),
                type=err.get("type", "value_error"),
            ).model_dump()
        )
    return _respond(
        request, 422, ErrorCode.VALIDATION_ERROR.value,
        f"Request validation failed: {len(details)} error(s)", details,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return _respond(
        request, exc.status_code, code.value,
        str(exc.detail) if exc.detail else code.value,
    )


async def bytescope_error_handler(request: Request, exc: BytescopeError) -> JSONResponse:
    """Map analysis errors onto HTTP statuses."""
    for error_type, status_code, code in _DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, code = 500, ErrorCode.INTERNAL_ERROR

    details = None
    if isinstance(exc, AggregateFailure):
        details = [
            {"address": f.contract.address, "message": str(f.error)}
            for f in exc.failures
        ]
    elif isinstance(exc, (FetchError, AnalysisError)) and exc.address:
        details = [{"address": exc.address}]

    logger.warning("%s on %s %s: %s", code.value, request.method, request.url.path, exc)
    return _respond(request, status_code, code.value, str(exc), details)


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Log the full traceback and return a generic error."""
    logger.exception(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )
    return _respond(
        request, 500, ErrorCode.INTERNAL_ERROR.value,
        "An internal server error occurred. Please try again later.",
    )


def register_error_handlers(app: Any) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(BytescopeError, bytescope_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
