"""
Streak state machine.

StreakAggregate is an immutable value; apply_qualified_date() is the only
way to move it forward on a qualifying day:

  | calendar_day_diff(d, last) | current      | longest            | last | count |
  |----------------------------|--------------|--------------------|------|-------|
  | last is None (first ever)  | 1            | max(longest, 1)    | d    | +1    |
  | 0  (same day)              | =            | =                  | =    | =     |
  | 1  (consecutive)           | current + 1  | max(longest, cur+1)| d    | +1    |
  | >1 (gap)                   | 1            | =                  | d    | +1    |
  | <0 (late / out of order)   | =            | =                  | =    | +1    |

Late data never repairs a previously broken streak, even when it fills the
exact gap day. Dates from one ingestion must be applied in ascending order;
apply_qualified_dates() sorts them.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Optional

from focus_streaks.core.errors import CorruptAggregateStateError
from focus_streaks.services.calendar import calendar_day_diff


@dataclass(frozen=True)
class StreakAggregate:
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_qualified_date: Optional[date] = None
    qualified_days_count: int = 0
    # Set only by reset_streak(): allows current_streak == 0 with a known last date.
    streak_reset: bool = False
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        problem = self._invariant_violation()
        if problem:
            raise CorruptAggregateStateError(self.user_id, problem)

    def _invariant_violation(self) -> str | None:
        for name in ("current_streak", "longest_streak", "qualified_days_count"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                return f"{name} must be an integer"
            if value < 0:
                return f"{name} is negative ({value})"
        if self.current_streak > self.longest_streak:
            return (
                f"current_streak {self.current_streak} exceeds "
                f"longest_streak {self.longest_streak}"
            )
        if self.last_qualified_date is None:
            if self.current_streak or self.qualified_days_count:
                return "streak counters set without a last_qualified_date"
            if self.streak_reset:
                return "streak_reset set on an aggregate that never qualified"
        elif self.current_streak == 0 and not self.streak_reset:
            return "current_streak is 0 with a last_qualified_date but no explicit reset"
        if self.qualified_days_count < self.current_streak:
            return "qualified_days_count is lower than current_streak"
        return None

    @classmethod
    def empty(cls, user_id: str) -> "StreakAggregate":
        """Zero value for a user that never had a qualifying day."""
        return cls(user_id=user_id)

    @property
    def has_active_streak(self) -> bool:
        return self.current_streak > 0 and self.last_qualified_date is not None


def apply_qualified_date(
    state: StreakAggregate,
    qualified_date: date,
    now: Optional[datetime] = None,
) -> StreakAggregate:
    """Return the aggregate after `qualified_date` qualifies. Pure."""
    stamp = now if now is not None else state.updated_at

    if state.last_qualified_date is None:
        return replace(
            state,
            current_streak=1,
            longest_streak=max(state.longest_streak, 1),
            last_qualified_date=qualified_date,
            qualified_days_count=state.qualified_days_count + 1,
            streak_reset=False,
            updated_at=stamp,
        )

    diff = calendar_day_diff(qualified_date, state.last_qualified_date)

    if diff == 0:
        return state

    if diff < 0:
        return replace(
            state,
            qualified_days_count=state.qualified_days_count + 1,
            updated_at=stamp,
        )

    if diff == 1:
        current = state.current_streak + 1
        return replace(
            state,
            current_streak=current,
            longest_streak=max(state.longest_streak, current),
            last_qualified_date=qualified_date,
            qualified_days_count=state.qualified_days_count + 1,
            streak_reset=False,
            updated_at=stamp,
        )

    # gap of two or more calendar days
    return replace(
        state,
        current_streak=1,
        last_qualified_date=qualified_date,
        qualified_days_count=state.qualified_days_count + 1,
        streak_reset=False,
        updated_at=stamp,
    )


def apply_qualified_dates(
    state: StreakAggregate,
    dates: Iterable[date],
    now: Optional[datetime] = None,
) -> StreakAggregate:
    """Fold several qualifying dates into `state`, oldest first."""
    for d in sorted(set(dates)):
        state = apply_qualified_date(state, d, now)
    return state


def reset_streak(state: StreakAggregate, now: Optional[datetime] = None) -> StreakAggregate:
    """
    Explicitly break the current streak.

    longest_streak, qualified_days_count and last_qualified_date are kept, so
    a qualifying day right after last_qualified_date starts again at 1.
    """
    if state.last_qualified_date is None:
        return state
    return replace(
        state,
        current_streak=0,
        streak_reset=True,
        updated_at=now if now is not None else state.updated_at,
    )
