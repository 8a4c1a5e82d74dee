"""
Typed domain errors and the FastAPI handlers that render them.

Services raise a ``WeekplanError`` subclass; the HTTP layer never builds
error payloads by hand.  Every error carries a machine-readable ``kind`` and,
where it applies, the offending ``field`` and ``value`` so clients can render
a useful message.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    INVALID_DATE = "invalid_date"
    INVALID_RANGE = "invalid_range"
    PERMISSION_DENIED = "permission_denied"
    LOCKED = "locked"
    INVALID_STATE = "invalid_state"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


_STATUS_BY_KIND = {
    ErrorKind.INVALID_DATE: 422,
    ErrorKind.INVALID_RANGE: 422,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.LOCKED: 423,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAVAILABLE: 503,
}


class WeekplanError(Exception):
    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "kind": self.kind.value,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
            "success": False,
        }


class InvalidDateError(WeekplanError):
    kind = ErrorKind.INVALID_DATE


class InvalidRangeError(WeekplanError):
    kind = ErrorKind.INVALID_RANGE


class PermissionDeniedError(WeekplanError):
    kind = ErrorKind.PERMISSION_DENIED


class LockedError(WeekplanError):
    """Day entry was stamped by an approved leave request."""
    kind = ErrorKind.LOCKED


class InvalidStateError(WeekplanError):
    kind = ErrorKind.INVALID_STATE


class ConflictError(WeekplanError):
    kind = ErrorKind.CONFLICT


class NotFoundError(WeekplanError):
    kind = ErrorKind.NOT_FOUND


class UnavailableError(WeekplanError):
    """Persistence layer unreachable; the caller may retry."""
    kind = ErrorKind.UNAVAILABLE


# ── Handlers ────────────────────────────────────────────────────────
async def _weekplan_error_handler(_request: Request, exc: WeekplanError) -> JSONResponse:
    if exc.kind == ErrorKind.UNAVAILABLE:
        logger.error("Store unavailable: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "kind": ErrorKind.CONFLICT.value, "success": False},
    )


async def _unavailable_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database unavailable: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable", "kind": ErrorKind.UNAVAILABLE.value, "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(WeekplanError, _weekplan_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OperationalError, _unavailable_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PoolTimeoutError, _unavailable_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
