"""
FocusSession rows: one per civil-day segment of an accepted session.

Append-only. `session_id` is the segment id (the caller's id for sessions
that stay within one day, `{id}-day{n}` otherwise); `source_session_id`
keeps the caller's id so retries are detected before segmentation.
`civil_date` is the day the segment belongs to in its own timezone.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, DateTime, Date, Index, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from focus_streaks.db.base import Base


class FocusSessionRecord(Base):
    __tablename__ = "focus_sessions"
    __table_args__ = (
        Index("ix_focus_sessions_user_civil_date", "user_id", "civil_date"),
        CheckConstraint("end_time > start_time", name="ck_focus_sessions_interval"),
        CheckConstraint("duration_minutes >= 0", name="ck_focus_sessions_duration"),
    )

    session_id: Mapped[str] = mapped_column(String(160), primary_key=True)
    source_session_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    civil_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
