"""
UserStreak: denormalized per-user streak projection.

One row per user, written only by the ingest service. `version` is the
optimistic-concurrency counter: SQLAlchemy adds it to the UPDATE's WHERE
clause and raises StaleDataError when another writer got there first.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Boolean, DateTime, Date, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from focus_streaks.db.base import Base


class UserStreakRecord(Base):
    __tablename__ = "user_streaks"
    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_user_streaks_current"),
        CheckConstraint("longest_streak >= 0", name="ck_user_streaks_longest"),
        CheckConstraint("qualified_days_count >= 0", name="ck_user_streaks_count"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_qualified_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    qualified_days_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, index=True
    )
    streak_reset: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
