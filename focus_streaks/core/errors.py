"""
Custom exception hierarchy for the focus streaks service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Validation errors (interval, timezone, date) are surfaced to the caller.
DuplicateSessionError and ConcurrentModificationError are internal: the
ingest service turns the first into a no-op (or SessionIdConflictError when
the colliding row belongs to a different session) and retries the second.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from focus_streaks.schemas.common import ErrorDetail

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class StreaksException(Exception):
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


class InvalidIntervalError(StreaksException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_INTERVAL"

    def __init__(self, start: Any, end: Any):
        super().__init__(
            message="End time must be after start time.",
            details={"start_time": str(start), "end_time": str(end)},
        )


class InvalidTimezoneError(StreaksException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_TIMEZONE"

    def __init__(self, timezone: str):
        super().__init__(
            message=f"Unrecognized IANA timezone {timezone!r}.",
            details={"timezone": timezone},
        )


class InvalidDateError(StreaksException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_DATE"

    def __init__(self, value: Any, reason: str = "malformed calendar value"):
        super().__init__(
            message=f"Invalid date {value!r}: {reason}.",
            details={"value": str(value)},
        )


class DuplicateSessionError(StreaksException):
    http_status = status.HTTP_409_CONFLICT
    code = "DUPLICATE_SESSION"

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Focus session {session_id!r} already exists.",
            details={"session_id": session_id},
        )
        self.session_id = session_id


class SessionIdConflictError(StreaksException):
    http_status = status.HTTP_409_CONFLICT
    code = "SESSION_ID_CONFLICT"

    def __init__(self, session_id: str, segment_id: str, existing_session_id: str):
        super().__init__(
            message=(
                f"Focus session {session_id!r} cannot be stored: segment id "
                f"{segment_id!r} already belongs to session {existing_session_id!r}."
            ),
            details={
                "session_id": session_id,
                "segment_id": segment_id,
                "existing_session_id": existing_session_id,
            },
        )


class ConcurrentModificationError(StreaksException):
    http_status = status.HTTP_409_CONFLICT
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, user_id: str):
        super().__init__(
            message=f"Streak for user {user_id!r} was modified concurrently.",
            details={"user_id": user_id},
        )
        self.user_id = user_id


class StreakUpdateUnavailable(StreaksException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STREAK_UPDATE_UNAVAILABLE"

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            message=(
                f"Could not update streak for user {user_id!r} after "
                f"{attempts} attempts. Retry the request."
            ),
            details={"user_id": user_id, "attempts": attempts},
        )


class CorruptAggregateStateError(StreaksException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CORRUPT_AGGREGATE_STATE"

    def __init__(self, user_id: str, reason: str):
        super().__init__(
            message=f"Streak aggregate for user {user_id!r} is corrupt: {reason}.",
            details={"user_id": user_id, "reason": reason},
        )


class InvalidDateRangeError(StreaksException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_DATE_RANGE"

    def __init__(self, start: date, end: date):
        super().__init__(
            message=f"start_date {start} is after end_date {end}.",
            details={"start_date": str(start), "end_date": str(end)},
        )


class BatchTooLargeError(StreaksException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "BATCH_TOO_LARGE"

    def __init__(self, max_items: int, received: int):
        super().__init__(
            message=f"Batch exceeds maximum size of {max_items} items. Received {received}.",
            details={"max_items": max_items, "received": received},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def streaks_exception_handler(request: Request, exc: StreaksException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(exc.message, extra={"error_code": exc.code})
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
        field_errors.append(ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"] if loc != "body"),
            message=error["msg"],
            type=error["type"],
        ).model_dump())
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
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
