"""Pydantic schemas for patterns, sessions and stats."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class PatternDurations(BaseModel):
    """Phase lengths in whole seconds.

    Range checks (inhale/exhale 1-60, holds 0-60) are done by the domain so
    every offending field is reported at once.
    """

    inhale_seconds: int = Field(description="Inhale length")
    hold_seconds: int = Field(default=0, description="Hold after inhale")
    exhale_seconds: int = Field(description="Exhale length")
    hold_out_seconds: int = Field(default=0, description="Hold after exhale (box breathing)")


class PatternRequest(PatternDurations):
    """Create or replace a custom pattern."""

    name: str = Field(min_length=1, max_length=100, description="Pattern name, unique per user")
    description: str = Field(default="", max_length=500)


class SessionCredit(str, Enum):
    """How a manual stop is credited."""

    ABANDON = "abandon"  # Kept in history, not counted
    FINISH = "finish"  # Counted with the time practiced so far


class StartSessionRequest(BaseModel):
    """Start a session from a preset, a saved custom pattern or inline durations.

    With no pattern source the default preset is used.
    """

    target_seconds: int | None = Field(default=None, ge=1, description="Session length in seconds")
    duration_minutes: int | None = Field(
        default=None, ge=1, description="Session length in minutes (alternative to target_seconds)"
    )
    preset: str | None = Field(default=None, description="Preset slug, e.g. 'box'")
    pattern_id: str | None = Field(default=None, description="Id of a saved custom pattern")
    pattern: PatternDurations | None = Field(default=None, description="Inline durations")

    @model_validator(mode="after")
    def check_duration(self) -> "StartSessionRequest":
        if self.target_seconds is None and self.duration_minutes is None:
            raise ValueError("target_seconds or duration_minutes is required")
        if self.target_seconds is not None and self.duration_minutes is not None:
            raise ValueError("Give target_seconds or duration_minutes, not both")
        return self

    @property
    def resolved_target_seconds(self) -> int:
        if self.target_seconds is not None:
            return self.target_seconds
        return (self.duration_minutes or 0) * 60

    def inline_durations(self) -> dict[str, int] | None:
        return self.pattern.model_dump() if self.pattern is not None else None


class TickRequest(BaseModel):
    """Advance a client-clocked session."""

    seconds: int = Field(default=1, ge=1, le=60, description="Seconds elapsed since the last tick")


class StopSessionRequest(BaseModel):
    """Stop a session before its target."""

    credit: SessionCredit = Field(
        default=SessionCredit.ABANDON,
        description="abandon: history only; finish: count the time practiced",
    )

    @property
    def early_exit(self) -> bool:
        return self.credit == SessionCredit.ABANDON


class StatsResponse(BaseModel):
    """Stats and unlocked achievements of a user."""

    total_sessions: int
    total_minutes: int
    streak_days: int
    longest_streak: int
    last_session_date: str | None
    next_milestone: int | None = Field(description="Next total-sessions milestone")
    achievements: list[dict[str, Any]]
