"""
Storage contracts consumed by the ingest service.

Implementations: SqlSessionStore / SqlStreakStore (services/stores.py) for
the API, InMemorySessionStore / InMemoryStreakStore for unit tests.
"""
from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from focus_streaks.services.segmenter import Segment
from focus_streaks.services.streak_machine import StreakAggregate


class SessionStore(Protocol):
    def save(self, segment: Segment) -> None:
        """Persist a segment. Raises DuplicateSessionError if its id exists."""
        ...

    def find_by_id(self, session_id: str) -> Optional[Segment]:
        """Segment whose id or source session id equals `session_id`."""
        ...

    def find_by_source(self, source_session_id: str) -> list[Segment]:
        """Segments split from the caller session `source_session_id`, by start time."""
        ...

    def sum_minutes(self, user_id: str, civil_date: date) -> int: ...

    def find_by_user_and_date_range(
        self, user_id: str, start_date: date, end_date: date,
    ) -> list[Segment]: ...


class StreakStore(Protocol):
    def load(self, user_id: str) -> Optional[StreakAggregate]:
        """Raises CorruptAggregateStateError if the stored row is invalid."""
        ...

    def save(self, aggregate: StreakAggregate) -> None:
        """Raises ConcurrentModificationError on a conflicting write."""
        ...

    def top_by_qualified_days(self, limit: int) -> list[StreakAggregate]: ...
