"""
Qualified-day resolver.

For every civil date touched by one ingestion, ask the session store for the
user's minute total on that date (the new segments are already persisted)
and compare it with the threshold. A date is reported only on the ingestion
that lifts its total from below the threshold to at or above it, so each
civil date reaches the state machine at most once.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from focus_streaks.services.ports import SessionStore
from focus_streaks.services.segmenter import Segment, split_minutes_by_date


@dataclass(frozen=True)
class DayTotal:
    civil_date: date
    total_minutes: int
    added_minutes: int
    threshold: int

    @property
    def qualifies(self) -> bool:
        return self.total_minutes >= self.threshold

    @property
    def newly_qualified(self) -> bool:
        return self.qualifies and (self.total_minutes - self.added_minutes) < self.threshold


def evaluate_days(
    segments: list[Segment],
    store: SessionStore,
    threshold: int,
) -> list[DayTotal]:
    """Minute totals for each date touched by `segments`, ascending by date."""
    if threshold < 1:
        raise ValueError("threshold must be at least one minute")
    if not segments:
        return []
    user_id = segments[0].user_id
    added = split_minutes_by_date(segments)
    return [
        DayTotal(
            civil_date=day,
            total_minutes=store.sum_minutes(user_id, day),
            added_minutes=added[day],
            threshold=threshold,
        )
        for day in sorted(added)
    ]


def resolve_qualified_dates(
    segments: list[Segment],
    store: SessionStore,
    threshold: int,
) -> list[date]:
    """Dates that became qualifying with this ingestion, oldest first."""
    return [d.civil_date for d in evaluate_days(segments, store, threshold) if d.newly_qualified]
