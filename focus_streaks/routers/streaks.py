"""
Streaks router.

GET  /users/{user_id}/streak
POST /users/{user_id}/streak/reset
GET  /streaks/leaderboard
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from focus_streaks.core.clock import Clock, get_clock
from focus_streaks.db.base import get_db
from focus_streaks.schemas.streaks import LeaderboardEntry, LeaderboardResponse, StreakResponse
from focus_streaks.services.ingest import get_leaderboard, get_streak, reset_user_streak
from focus_streaks.services.streak_machine import StreakAggregate

router = APIRouter(tags=["streaks"])

UserId = Annotated[str, Path(min_length=1, max_length=64, examples=["550e8400-e29b-41d4-a716-446655440000"])]


def streak_to_response(agg: StreakAggregate) -> StreakResponse:
    return StreakResponse(
        user_id=agg.user_id,
        current_streak=agg.current_streak,
        longest_streak=agg.longest_streak,
        last_qualified_date=str(agg.last_qualified_date) if agg.last_qualified_date else None,
        qualified_days_count=agg.qualified_days_count,
        has_active_streak=agg.has_active_streak,
    )


@router.get(
    "/users/{user_id}/streak",
    response_model=StreakResponse,
    summary="Current streak of a user",
    responses={200: {"description": "Streak aggregate; zero values for unknown users."}},
)
def user_streak(user_id: UserId, db: Session = Depends(get_db)):
    """Never 404s: a user without qualifying days gets the zero-value streak."""
    return streak_to_response(get_streak(db, user_id))


@router.post(
    "/users/{user_id}/streak/reset",
    response_model=StreakResponse,
    summary="Break a user's current streak",
    responses={503: {"description": "Concurrent updates kept conflicting; retry."}},
)
def user_streak_reset(
    user_id: UserId,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Set `current_streak` to 0. `longest_streak`, `qualified_days_count` and
    `last_qualified_date` are kept; the next consecutive qualifying day starts at 1.
    """
    return streak_to_response(reset_user_streak(db, user_id, clock))


@router.get(
    "/streaks/leaderboard",
    response_model=LeaderboardResponse,
    summary="Users ranked by total qualifying days",
)
def leaderboard(
    limit: int = Query(default=10, ge=1, le=100, description="Number of users to return."),
    db: Session = Depends(get_db),
):
    rows = get_leaderboard(db, limit=limit)
    return LeaderboardResponse(
        total=len(rows),
        items=[
            LeaderboardEntry(
                rank=i + 1,
                user_id=agg.user_id,
                qualified_days_count=agg.qualified_days_count,
                current_streak=agg.current_streak,
                longest_streak=agg.longest_streak,
            )
            for i, agg in enumerate(rows)
        ],
    )
