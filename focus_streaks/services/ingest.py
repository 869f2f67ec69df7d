"""
Ingest service: accepts focus sessions and keeps each user's streak current.

Public API
----------
accept_session(db, item, clock)        → AcceptResult   (one transaction)
accept_batch(items, db, clock)         → list[dict]     (one transaction per item)
get_streak(db, user_id)                → StreakAggregate (zero value if unknown)
reset_user_streak(db, user_id, clock)  → StreakAggregate
get_leaderboard(db, limit)             → list[StreakAggregate]
list_sessions(db, user_id, start, end) → list[Segment]

Internal
--------
process_session(item, sessions, streaks, threshold, now) → AcceptResult
    validate → idempotency check (by source session id) → split → save segments → resolve
    qualifying dates → apply transitions → save aggregate. Store-agnostic,
    never commits.

Concurrency
-----------
Writes for one user run under a per-process lock for that user. Across
processes the `user_streaks.version` column detects lost updates; every
accepted session rewrites the user's row, so two sessions racing on the same
civil date cannot both miss the other's minutes. A conflicting write rolls
the whole transaction back and the orchestration is retried with tenacity
up to STREAK_WRITE_ATTEMPTS times.
"""
from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from focus_streaks.core.clock import Clock
from focus_streaks.core.config import settings
from focus_streaks.core.errors import (
    ConcurrentModificationError,
    DuplicateSessionError,
    InvalidDateRangeError,
    SessionIdConflictError,
    StreaksException,
    StreakUpdateUnavailable,
)
from focus_streaks.services.calendar import parse_civil_date
from focus_streaks.services.ports import SessionStore, StreakStore
from focus_streaks.services.resolver import resolve_qualified_dates
from focus_streaks.services.segmenter import FocusSession, Segment, split_session
from focus_streaks.services.stores import SqlSessionStore, SqlStreakStore
from focus_streaks.services.streak_machine import (
    StreakAggregate,
    apply_qualified_dates,
    reset_streak,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Input / result types
# ---------------------------------------------------------------------------

@dataclass
class SessionInput:
    """Lightweight DTO so the service layer stays schema-agnostic."""
    session_id: str
    user_id: str
    start_time: datetime
    end_time: datetime
    timezone: str


@dataclass
class AcceptResult:
    session_id: str
    user_id: str
    duplicate: bool = False
    segments: list[Segment] = field(default_factory=list)
    qualified_dates: list[date] = field(default_factory=list)
    streak: Optional[StreakAggregate] = None


# ---------------------------------------------------------------------------
# Per-user locks
# ---------------------------------------------------------------------------

class _UserLock:
    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc):
        self._lock.release()
        return False


class UserLocks:
    """One lock per user id; entries vanish once no caller holds them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, _UserLock]" = weakref.WeakValueDictionary()

    def for_user(self, user_id: str) -> _UserLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = _UserLock()
                self._locks[user_id] = lock
            return lock


user_locks = UserLocks()


# ---------------------------------------------------------------------------
# Core: store-agnostic, no commit
# ---------------------------------------------------------------------------

def process_session(
    item: SessionInput,
    sessions: SessionStore,
    streaks: StreakStore,
    threshold: int,
    now: Optional[datetime] = None,
) -> AcceptResult:
    """
    Run one ingestion against the given stores.

    A session is a duplicate only when segments split from the same caller
    id are already stored. Raises DuplicateSessionError if a segment id
    collides while saving; the caller decides whether that is a concurrent
    copy of this session or another session owning the id.
    """
    session = FocusSession.create(
        session_id=item.session_id,
        user_id=item.user_id,
        start_time=item.start_time,
        end_time=item.end_time,
        timezone=item.timezone,
    )

    if sessions.find_by_source(session.session_id):
        return AcceptResult(session_id=session.session_id, user_id=session.user_id, duplicate=True)

    segments = split_session(session)
    for segment in segments:
        sessions.save(segment)

    qualified = resolve_qualified_dates(segments, sessions, threshold)

    current = streaks.load(session.user_id) or StreakAggregate.empty(session.user_id)
    updated = apply_qualified_dates(current, qualified, now)
    if now is not None:
        updated = replace(updated, updated_at=now)
    streaks.save(updated)

    return AcceptResult(
        session_id=session.session_id,
        user_id=session.user_id,
        segments=segments,
        qualified_dates=qualified,
        streak=updated,
    )


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Concurrent streak update, retrying (attempt %d): %s",
        retry_state.attempt_number,
        exc,
        extra={
            "attempt": retry_state.attempt_number,
            "user_id": getattr(exc, "user_id", None),
        },
    )


def _run_with_retry(
    fn: Callable[[], T],
    user_id: str,
    max_attempts: Optional[int],
    retry_wait_max: Optional[float],
) -> T:
    attempts = max_attempts if max_attempts is not None else settings.STREAK_WRITE_ATTEMPTS
    wait_max = retry_wait_max if retry_wait_max is not None else settings.STREAK_RETRY_WAIT_MAX
    retryer = Retrying(
        retry=retry_if_exception_type(ConcurrentModificationError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.05, max=wait_max),
        before_sleep=_log_retry,
    )
    try:
        return retryer(fn)
    except RetryError as exc:
        logger.error(
            "Streak update failed after %d attempts",
            attempts,
            extra={"user_id": user_id, "error_code": StreakUpdateUnavailable.code},
        )
        raise StreakUpdateUnavailable(user_id=user_id, attempts=attempts) from exc


# ---------------------------------------------------------------------------
# Public: single session
# ---------------------------------------------------------------------------

def _raise_unless_same_session(
    sessions: SessionStore,
    item: SessionInput,
    exc: DuplicateSessionError,
) -> None:
    """
    Classify a segment id collision after the failed transaction is gone.

    Returns when another submission of this very session committed first.
    Raises SessionIdConflictError when the id belongs to a different session
    (e.g. caller id "x-day0" against the first segment of session "x"), and
    ConcurrentModificationError when the colliding row is no longer there.
    """
    if sessions.find_by_source(item.session_id):
        return
    existing = sessions.find_by_id(exc.session_id)
    if existing is None:
        raise ConcurrentModificationError(item.user_id) from exc
    logger.warning(
        "Focus session id collides with another session's segment",
        extra={"session_id": item.session_id, "user_id": item.user_id},
    )
    raise SessionIdConflictError(
        session_id=item.session_id,
        segment_id=exc.session_id,
        existing_session_id=existing.source_session_id,
    ) from exc


def _accept_once(db: Session, item: SessionInput, threshold: int, clock: Clock) -> AcceptResult:
    now = clock.now()
    try:
        result = process_session(
            item,
            SqlSessionStore(db, now=now),
            SqlStreakStore(db),
            threshold,
            now,
        )
        db.commit()
    except DuplicateSessionError as exc:
        db.rollback()
        _raise_unless_same_session(SqlSessionStore(db), item, exc)
        logger.info(
            "Duplicate focus session collapsed to no-op",
            extra={"session_id": item.session_id, "user_id": item.user_id},
        )
        return AcceptResult(session_id=item.session_id, user_id=item.user_id, duplicate=True)
    except Exception:
        db.rollback()
        raise

    if result.duplicate:
        logger.info(
            "Focus session already ingested",
            extra={"session_id": item.session_id, "user_id": item.user_id},
        )
    else:
        logger.info(
            "Focus session accepted",
            extra={
                "session_id": item.session_id,
                "user_id": item.user_id,
                "qualified_dates": [str(d) for d in result.qualified_dates],
            },
        )
    return result


def accept_session(
    db: Session,
    item: SessionInput,
    clock: Clock,
    threshold: Optional[int] = None,
    max_attempts: Optional[int] = None,
    retry_wait_max: Optional[float] = None,
) -> AcceptResult:
    """Accept one focus session. Safe to call repeatedly with the same session_id."""
    minutes = threshold if threshold is not None else settings.QUALIFYING_MINUTES
    with user_locks.for_user(item.user_id):
        return _run_with_retry(
            lambda: _accept_once(db, item, minutes, clock),
            item.user_id,
            max_attempts,
            retry_wait_max,
        )


# ---------------------------------------------------------------------------
# Public: batch
# ---------------------------------------------------------------------------

def accept_batch(
    items: list[SessionInput],
    db: Session,
    clock: Clock,
    threshold: Optional[int] = None,
) -> list[dict]:
    """
    Accept sessions one by one, each in its own transaction.
    A failure on one item does not cancel the others.
    Returns a list of raw dicts for the router to convert to BatchItemResult.
    """
    raw_results = []
    for i, item in enumerate(items):
        try:
            result = accept_session(db, item, clock, threshold=threshold)
            raw_results.append({"index": i, "ok": True, "result": result, "error": None})
        except StreaksException as exc:
            raw_results.append({"index": i, "ok": False, "result": None, "error": exc})
    return raw_results


# ---------------------------------------------------------------------------
# Public: queries and reset
# ---------------------------------------------------------------------------

def get_streak(db: Session, user_id: str) -> StreakAggregate:
    """Streak for `user_id`; the zero value when the user has none."""
    return SqlStreakStore(db).load(user_id) or StreakAggregate.empty(user_id)


def _reset_once(db: Session, user_id: str, clock: Clock) -> StreakAggregate:
    store = SqlStreakStore(db)
    try:
        current = store.load(user_id)
        if current is None:
            db.rollback()
            return StreakAggregate.empty(user_id)
        updated = reset_streak(current, clock.now())
        if updated != current:
            store.save(updated)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Streak reset", extra={"user_id": user_id})
    return updated


def reset_user_streak(
    db: Session,
    user_id: str,
    clock: Clock,
    max_attempts: Optional[int] = None,
    retry_wait_max: Optional[float] = None,
) -> StreakAggregate:
    with user_locks.for_user(user_id):
        return _run_with_retry(
            lambda: _reset_once(db, user_id, clock),
            user_id,
            max_attempts,
            retry_wait_max,
        )


def get_leaderboard(db: Session, limit: int = 10) -> list[StreakAggregate]:
    return SqlStreakStore(db).top_by_qualified_days(limit)


def list_sessions(
    db: Session,
    user_id: str,
    start_date: date | str,
    end_date: date | str,
) -> list[Segment]:
    """Segments whose civil date lies in [start_date, end_date]. Accepts ISO date strings."""
    start = parse_civil_date(start_date)
    end = parse_civil_date(end_date)
    if start > end:
        raise InvalidDateRangeError(start, end)
    return SqlSessionStore(db).find_by_user_and_date_range(user_id, start, end)
