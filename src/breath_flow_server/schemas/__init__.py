"""Pydantic schemas for API requests and responses."""

from breath_flow_server.schemas.accounts import (
    AuthResponse,
    ChangePasswordRequest,
    FeedbackRequest,
    LoginRequest,
    PreferencesRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    ReminderRequest,
)
from breath_flow_server.schemas.breathing import (
    PatternDurations,
    PatternRequest,
    SessionCredit,
    StartSessionRequest,
    StatsResponse,
    StopSessionRequest,
    TickRequest,
)

__all__ = [
    "AuthResponse",
    "ChangePasswordRequest",
    "FeedbackRequest",
    "LoginRequest",
    "PatternDurations",
    "PatternRequest",
    "PreferencesRequest",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "ReminderRequest",
    "SessionCredit",
    "StartSessionRequest",
    "StatsResponse",
    "StopSessionRequest",
    "TickRequest",
]
