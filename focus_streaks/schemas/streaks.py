"""
Streak response schemas.

GET  /users/{user_id}/streak        → StreakResponse
POST /users/{user_id}/streak/reset  → StreakResponse
GET  /streaks/leaderboard           → LeaderboardResponse
"""
from typing import Optional
from pydantic import BaseModel, Field


class StreakResponse(BaseModel):
    user_id: str
    current_streak: int = Field(description="Consecutive qualifying days ending at last_qualified_date.")
    longest_streak: int = Field(description="Highest current_streak ever reached.")
    last_qualified_date: Optional[str] = Field(
        default=None,
        description="ISO civil date of the latest qualifying day, null if none yet.",
        examples=["2025-01-20"],
    )
    qualified_days_count: int = Field(description="Total qualifying days, including late ones.")
    has_active_streak: bool


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    qualified_days_count: int
    current_streak: int
    longest_streak: int


class LeaderboardResponse(BaseModel):
    total: int
    items: list[LeaderboardEntry]
