"""
Session segmenter: splits one focus session into civil-day-confined segments.

Public API
----------
FocusSession.create(session_id, user_id, start, end, tz)  → FocusSession
split_session(session)                                    → list[Segment]

A session that stays inside one civil day (in its own timezone) yields a
single segment carrying the session's own id. Otherwise segment ids are
`{session_id}-day{index}`, index counting from 0, so re-splitting the same
input always produces the same ids.

The first segment starts at the session's start instant and the last one
ends at its end instant; only the interior boundaries (local midnights) are
converted back from civil time. Segment minutes are truncated one segment at
a time, so their sum can fall short of the session's minutes by at most
len(segments) - 1.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from focus_streaks.core.errors import InvalidIntervalError
from focus_streaks.services.calendar import (
    civil_date_of,
    end_of_civil_day,
    from_civil,
    get_zone,
    minutes_between,
    to_civil,
)


@dataclass(frozen=True)
class FocusSession:
    """Raw interval as submitted by the client. Immutable."""
    session_id: str
    user_id: str
    start_time: datetime
    end_time: datetime
    timezone: str
    duration_minutes: int

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("session_id must not be empty")
        if not self.user_id:
            raise ValueError("user_id must not be empty")
        get_zone(self.timezone)
        # minutes_between rejects naive instants before the comparison below
        minutes = minutes_between(self.start_time, self.end_time)
        if self.end_time <= self.start_time:
            raise InvalidIntervalError(self.start_time, self.end_time)
        if self.duration_minutes != minutes:
            raise ValueError(
                f"duration_minutes={self.duration_minutes} does not match interval ({minutes})"
            )

    @classmethod
    def create(
        cls,
        session_id: str,
        user_id: str,
        start_time: datetime,
        end_time: datetime,
        timezone: str,
    ) -> "FocusSession":
        get_zone(timezone)
        duration = minutes_between(start_time, end_time)
        if end_time <= start_time:
            raise InvalidIntervalError(start_time, end_time)
        return cls(
            session_id=session_id,
            user_id=user_id,
            start_time=start_time,
            end_time=end_time,
            timezone=timezone,
            duration_minutes=duration,
        )


@dataclass(frozen=True)
class Segment:
    """A FocusSession confined to exactly one civil day."""
    segment_id: str
    source_session_id: str
    user_id: str
    start_time: datetime
    end_time: datetime
    timezone: str
    duration_minutes: int
    civil_date: date

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise InvalidIntervalError(self.start_time, self.end_time)
        if self.duration_minutes < 0:
            raise ValueError("duration_minutes must be >= 0")


def split_session(session: FocusSession) -> list[Segment]:
    """Split `session` at local midnights of its timezone, ascending by day."""
    tz = session.timezone
    civil_start = to_civil(session.start_time, tz)
    civil_end = to_civil(session.end_time, tz)

    if civil_end <= end_of_civil_day(civil_start):
        return [
            Segment(
                segment_id=session.session_id,
                source_session_id=session.session_id,
                user_id=session.user_id,
                start_time=session.start_time,
                end_time=session.end_time,
                timezone=tz,
                duration_minutes=session.duration_minutes,
                civil_date=civil_date_of(session.start_time, tz),
            )
        ]

    segments: list[Segment] = []
    current_civil = civil_start
    current_start = session.start_time
    index = 0
    while True:
        day_end = end_of_civil_day(current_civil)
        if civil_end <= day_end:
            segment_end = session.end_time
        else:
            segment_end = min(from_civil(day_end, tz), session.end_time)

        segments.append(
            Segment(
                segment_id=f"{session.session_id}-day{index}",
                source_session_id=session.session_id,
                user_id=session.user_id,
                start_time=current_start,
                end_time=segment_end,
                timezone=tz,
                duration_minutes=minutes_between(current_start, segment_end),
                civil_date=civil_date_of(current_start, tz),
            )
        )

        if segment_end >= session.end_time:
            break
        current_civil = day_end
        current_start = segment_end
        index += 1

    return segments


def split_minutes_by_date(segments: list[Segment]) -> dict[date, int]:
    """Minutes contributed per civil date by a set of segments."""
    totals: dict[date, int] = {}
    for seg in segments:
        totals[seg.civil_date] = totals.get(seg.civil_date, 0) + seg.duration_minutes
    return totals
