"""
Sessions router.

POST /sessions                  accept a single focus session (idempotent)
POST /sessions/batch            accept up to BATCH_MAX_ITEMS sessions
GET  /users/{user_id}/sessions  segments within a civil-date range
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from focus_streaks.core.clock import Clock, get_clock
from focus_streaks.core.config import settings
from focus_streaks.core.errors import BatchTooLargeError
from focus_streaks.db.base import get_db
from focus_streaks.routers.streaks import streak_to_response
from focus_streaks.schemas.common import ErrorResponse
from focus_streaks.schemas.sessions import (
    AcceptSessionRequest,
    AcceptSessionResponse,
    BatchAcceptRequest,
    BatchAcceptResponse,
    BatchItemResult,
    SegmentOut,
    SessionListResponse,
)
from focus_streaks.services.ingest import (
    AcceptResult,
    SessionInput,
    accept_batch,
    accept_session,
    list_sessions,
)
from focus_streaks.services.segmenter import Segment

router = APIRouter(tags=["sessions"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _segment_out(seg: Segment) -> SegmentOut:
    return SegmentOut(
        session_id=seg.segment_id,
        source_session_id=seg.source_session_id,
        user_id=seg.user_id,
        start_time=seg.start_time.isoformat(),
        end_time=seg.end_time.isoformat(),
        duration_minutes=seg.duration_minutes,
        timezone=seg.timezone,
        civil_date=str(seg.civil_date),
    )


def _result_to_response(result: AcceptResult) -> AcceptSessionResponse:
    return AcceptSessionResponse(
        session_id=result.session_id,
        user_id=result.user_id,
        duplicate=result.duplicate,
        segments=[_segment_out(s) for s in result.segments],
        qualified_dates=[str(d) for d in result.qualified_dates],
        streak=streak_to_response(result.streak) if result.streak else None,
    )


def _to_input(req: AcceptSessionRequest) -> SessionInput:
    return SessionInput(
        session_id=req.session_id,
        user_id=req.user_id,
        start_time=req.start_time,
        end_time=req.end_time,
        timezone=req.timezone,
    )


# ---------------------------------------------------------------------------
# POST /sessions  (single)
# ---------------------------------------------------------------------------

@router.post(
    "/sessions",
    response_model=AcceptSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Accept a focus session",
    responses={
        409: {"description": "session_id collides with a segment id of another session."},
        422: {"description": "Invalid interval, timezone or payload."},
        503: {"description": "Concurrent updates kept conflicting; safe to retry."},
    },
)
def accept(
    payload: AcceptSessionRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record a finished focus session. The session is split at local midnights
    of `timezone`, its minutes are added to each civil day it touches, and
    every day reaching the qualifying threshold advances the user's streak.

    Idempotent on `session_id`: repeating a request succeeds with
    `duplicate=true` and changes nothing.
    """
    result = accept_session(db, _to_input(payload), clock)
    return _result_to_response(result)


# ---------------------------------------------------------------------------
# POST /sessions/batch
# ---------------------------------------------------------------------------

@router.post(
    "/sessions/batch",
    response_model=BatchAcceptResponse,
    status_code=status.HTTP_207_MULTI_STATUS,
    summary="Accept a batch of focus sessions",
    responses={
        207: {"description": "Multi-status: check each item's `ok` field."},
        422: {"description": "Batch-level validation error (empty list, too many items)."},
    },
)
def accept_batch_endpoint(
    payload: BatchAcceptRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Sessions are processed in request order, each in its own transaction,
    so out-of-order uploads from an offline client land the same way as
    individual requests would. A failing item does not roll back the others.
    """
    if len(payload.items) > settings.BATCH_MAX_ITEMS:
        raise BatchTooLargeError(max_items=settings.BATCH_MAX_ITEMS, received=len(payload.items))

    raw_results = accept_batch([_to_input(req) for req in payload.items], db, clock)

    item_results = [
        BatchItemResult(
            index=r["index"],
            ok=r["ok"],
            result=_result_to_response(r["result"]) if r["ok"] else None,
            error=ErrorResponse(**r["error"].to_dict()) if r["error"] is not None else None,
        )
        for r in raw_results
    ]
    succeeded = sum(1 for r in item_results if r.ok)
    return BatchAcceptResponse(
        total=len(item_results),
        succeeded=succeeded,
        failed=len(item_results) - succeeded,
        items=item_results,
    )


# ---------------------------------------------------------------------------
# GET /users/{user_id}/sessions
# ---------------------------------------------------------------------------

@router.get(
    "/users/{user_id}/sessions",
    response_model=SessionListResponse,
    summary="Session segments of a user within a civil-date range",
    responses={422: {"description": "Malformed date or start_date after end_date."}},
)
def user_sessions(
    user_id: Annotated[str, Path(min_length=1, max_length=64)],
    start_date: str = Query(description="First civil date (YYYY-MM-DD), inclusive.", examples=["2025-01-10"]),
    end_date: str = Query(description="Last civil date (YYYY-MM-DD), inclusive.", examples=["2025-01-16"]),
    db: Session = Depends(get_db),
):
    """Malformed dates answer 422 `INVALID_DATE`, an inverted range `INVALID_DATE_RANGE`."""
    segments = list_sessions(db, user_id, start_date, end_date)
    return SessionListResponse(
        total=len(segments),
        total_minutes=sum(s.duration_minutes for s in segments),
        items=[_segment_out(s) for s in segments],
    )
