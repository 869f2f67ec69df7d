"""
Session and streak stores.

SqlSessionStore / SqlStreakStore work inside the caller's SQLAlchemy
Session and only flush: commit and rollback belong to the ingest service,
which treats one accepted session as one transaction.

InMemorySessionStore / InMemoryStreakStore implement the same contracts
over dicts for unit tests of the orchestration.
"""
from __future__ import annotations

import threading
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError, StaleDataError

from focus_streaks.core.errors import ConcurrentModificationError, DuplicateSessionError
from focus_streaks.models.focus_session import FocusSessionRecord
from focus_streaks.models.user_streak import UserStreakRecord
from focus_streaks.services.segmenter import Segment
from focus_streaks.services.streak_machine import StreakAggregate


def _utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# SQLAlchemy
# ---------------------------------------------------------------------------

def _segment_from_record(rec: FocusSessionRecord) -> Segment:
    return Segment(
        segment_id=rec.session_id,
        source_session_id=rec.source_session_id,
        user_id=rec.user_id,
        start_time=_utc(rec.start_time),
        end_time=_utc(rec.end_time),
        timezone=rec.timezone,
        duration_minutes=rec.duration_minutes,
        civil_date=rec.civil_date,
    )


class SqlSessionStore:
    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.now = now

    def save(self, segment: Segment) -> None:
        record = FocusSessionRecord(
            session_id=segment.segment_id,
            source_session_id=segment.source_session_id,
            user_id=segment.user_id,
            start_time=_utc(segment.start_time),
            end_time=_utc(segment.end_time),
            duration_minutes=segment.duration_minutes,
            timezone=segment.timezone,
            civil_date=segment.civil_date,
        )
        if self.now is not None:
            record.created_at = self.now
        self.db.add(record)
        try:
            self.db.flush()
        except (IntegrityError, FlushError) as exc:
            raise DuplicateSessionError(segment.segment_id) from exc

    def find_by_id(self, session_id: str) -> Optional[Segment]:
        rec = (
            self.db.query(FocusSessionRecord)
            .filter(or_(
                FocusSessionRecord.session_id == session_id,
                FocusSessionRecord.source_session_id == session_id,
            ))
            .order_by(FocusSessionRecord.start_time)
            .first()
        )
        return _segment_from_record(rec) if rec else None

    def find_by_source(self, source_session_id: str) -> list[Segment]:
        rows = (
            self.db.query(FocusSessionRecord)
            .filter(FocusSessionRecord.source_session_id == source_session_id)
            .order_by(FocusSessionRecord.start_time)
            .all()
        )
        return [_segment_from_record(r) for r in rows]

    def sum_minutes(self, user_id: str, civil_date: date) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(FocusSessionRecord.duration_minutes), 0))
            .filter(
                FocusSessionRecord.user_id == user_id,
                FocusSessionRecord.civil_date == civil_date,
            )
            .scalar()
        )
        return int(total or 0)

    def find_by_user_and_date_range(
        self, user_id: str, start_date: date, end_date: date,
    ) -> list[Segment]:
        rows = (
            self.db.query(FocusSessionRecord)
            .filter(
                FocusSessionRecord.user_id == user_id,
                FocusSessionRecord.civil_date >= start_date,
                FocusSessionRecord.civil_date <= end_date,
            )
            .order_by(FocusSessionRecord.start_time, FocusSessionRecord.session_id)
            .all()
        )
        return [_segment_from_record(r) for r in rows]


def _aggregate_from_record(rec: UserStreakRecord) -> StreakAggregate:
    # StreakAggregate validates itself; a bad row raises CorruptAggregateStateError.
    return StreakAggregate(
        user_id=rec.user_id,
        current_streak=rec.current_streak,
        longest_streak=rec.longest_streak,
        last_qualified_date=rec.last_qualified_date,
        qualified_days_count=rec.qualified_days_count,
        streak_reset=bool(rec.streak_reset),
        updated_at=_utc(rec.updated_at) if rec.updated_at else None,
    )


class SqlStreakStore:
    def __init__(self, db: Session):
        self.db = db

    def load(self, user_id: str) -> Optional[StreakAggregate]:
        rec = self.db.get(UserStreakRecord, user_id)
        return _aggregate_from_record(rec) if rec else None

    def save(self, aggregate: StreakAggregate) -> None:
        # get() returns the instance loaded by load() in this transaction, so
        # the version SQLAlchemy checks is the one the transition was based on.
        rec = self.db.get(UserStreakRecord, aggregate.user_id)
        if rec is None:
            rec = UserStreakRecord(user_id=aggregate.user_id)
            self.db.add(rec)
        rec.current_streak = aggregate.current_streak
        rec.longest_streak = aggregate.longest_streak
        rec.last_qualified_date = aggregate.last_qualified_date
        rec.qualified_days_count = aggregate.qualified_days_count
        rec.streak_reset = aggregate.streak_reset
        if aggregate.updated_at is not None:
            rec.updated_at = aggregate.updated_at
        try:
            self.db.flush()
        except (StaleDataError, IntegrityError) as exc:
            raise ConcurrentModificationError(aggregate.user_id) from exc

    def top_by_qualified_days(self, limit: int) -> list[StreakAggregate]:
        rows = (
            self.db.query(UserStreakRecord)
            .order_by(
                UserStreakRecord.qualified_days_count.desc(),
                UserStreakRecord.user_id,
            )
            .limit(limit)
            .all()
        )
        return [_aggregate_from_record(r) for r in rows]


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemorySessionStore:
    def __init__(self):
        self._segments: dict[str, Segment] = {}
        self._lock = threading.Lock()

    def save(self, segment: Segment) -> None:
        with self._lock:
            if segment.segment_id in self._segments:
                raise DuplicateSessionError(segment.segment_id)
            self._segments[segment.segment_id] = segment

    def find_by_id(self, session_id: str) -> Optional[Segment]:
        with self._lock:
            matches = [
                s for s in self._segments.values()
                if s.segment_id == session_id or s.source_session_id == session_id
            ]
        return min(matches, key=lambda s: s.start_time) if matches else None

    def find_by_source(self, source_session_id: str) -> list[Segment]:
        with self._lock:
            rows = [s for s in self._segments.values() if s.source_session_id == source_session_id]
        return sorted(rows, key=lambda s: s.start_time)

    def sum_minutes(self, user_id: str, civil_date: date) -> int:
        with self._lock:
            return sum(
                s.duration_minutes for s in self._segments.values()
                if s.user_id == user_id and s.civil_date == civil_date
            )

    def find_by_user_and_date_range(
        self, user_id: str, start_date: date, end_date: date,
    ) -> list[Segment]:
        with self._lock:
            rows = [
                s for s in self._segments.values()
                if s.user_id == user_id and start_date <= s.civil_date <= end_date
            ]
        return sorted(rows, key=lambda s: (s.start_time, s.segment_id))

    def all(self) -> list[Segment]:
        with self._lock:
            return sorted(self._segments.values(), key=lambda s: (s.start_time, s.segment_id))


class InMemoryStreakStore:
    def __init__(self):
        self._streaks: dict[str, StreakAggregate] = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> Optional[StreakAggregate]:
        with self._lock:
            return self._streaks.get(user_id)

    def save(self, aggregate: StreakAggregate) -> None:
        with self._lock:
            self._streaks[aggregate.user_id] = aggregate

    def top_by_qualified_days(self, limit: int) -> list[StreakAggregate]:
        with self._lock:
            rows = sorted(
                self._streaks.values(),
                key=lambda a: (-a.qualified_days_count, a.user_id),
            )
        return rows[:limit]
