"""Database models."""

from breath_flow_server.models.achievement import UserAchievement
from breath_flow_server.models.api_key import APIKey
from breath_flow_server.models.base import Base
from breath_flow_server.models.feedback import Feedback
from breath_flow_server.models.pattern import BreathingPattern
from breath_flow_server.models.reminder import Reminder
from breath_flow_server.models.session_record import SessionRecord
from breath_flow_server.models.user import User

__all__ = [
    "APIKey",
    "Base",
    "BreathingPattern",
    "Feedback",
    "Reminder",
    "SessionRecord",
    "User",
    "UserAchievement",
]
