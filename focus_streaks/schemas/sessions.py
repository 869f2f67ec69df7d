"""
Focus session request / response schemas.

Single session:  POST /sessions          → AcceptSessionRequest → AcceptSessionResponse
Batch:           POST /sessions/batch    → BatchAcceptRequest   → BatchAcceptResponse
Listing:         GET  /users/{id}/sessions                      → SessionListResponse
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from focus_streaks.schemas.common import ErrorResponse
from focus_streaks.schemas.streaks import StreakResponse


# ---------------------------------------------------------------------------
# Single-session schemas
# ---------------------------------------------------------------------------

class AcceptSessionRequest(BaseModel):
    """A finished focus session reported by a client."""

    session_id: Annotated[str, Field(
        min_length=1,
        max_length=128,
        description="Caller-supplied id, unique per logical session. Used as the idempotency key.",
        examples=["session_123abc"],
    )]
    user_id: Annotated[str, Field(
        min_length=1,
        max_length=64,
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )]
    start_time: AwareDatetime = Field(
        description="Session start, ISO 8601 with offset.",
        examples=["2025-01-20T10:00:00Z"],
    )
    end_time: AwareDatetime = Field(
        description="Session end, ISO 8601 with offset. Must be after start_time.",
        examples=["2025-01-20T11:30:00Z"],
    )
    timezone: Annotated[str, Field(
        min_length=1,
        max_length=64,
        description="IANA timezone used to decide which civil day the minutes belong to.",
        examples=["America/New_York"],
    )]

    @field_validator("session_id", "user_id", "timezone", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if isinstance(stripped, str) and not stripped:
            raise ValueError("must not be empty after stripping whitespace")
        return stripped


class SegmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str = Field(description="Segment id: the session id, or `{session_id}-day{n}`.")
    source_session_id: str
    user_id: str
    start_time: str
    end_time: str
    duration_minutes: int
    timezone: str
    civil_date: str = Field(description="Civil day of the segment in its timezone.")


class AcceptSessionResponse(BaseModel):
    """Outcome of accepting one session."""
    session_id: str
    user_id: str
    duplicate: bool = Field(description="True when the session had already been ingested; nothing changed.")
    segments: list[SegmentOut] = Field(default_factory=list)
    qualified_dates: list[str] = Field(
        default_factory=list,
        description="Civil dates that became qualifying with this session.",
    )
    streak: Optional[StreakResponse] = None


# ---------------------------------------------------------------------------
# Batch schemas
# ---------------------------------------------------------------------------

class BatchAcceptRequest(BaseModel):
    """A batch of focus sessions, processed in order, each independently."""

    items: Annotated[list[AcceptSessionRequest], Field(
        min_length=1,
        description="Sessions to accept.",
    )]


class BatchItemResult(BaseModel):
    index: int = Field(description="Zero-based position in the request items list.")
    ok: bool
    result: Optional[AcceptSessionResponse] = Field(default=None, description="Populated when ok=True.")
    error: Optional[ErrorResponse] = Field(default=None, description="Populated when ok=False.")


class BatchAcceptResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    items: list[BatchItemResult]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class SessionListResponse(BaseModel):
    total: int
    total_minutes: int
    items: list[SegmentOut]
