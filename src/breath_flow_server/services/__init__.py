"""Business logic services."""

from breath_flow_server.services.accounts import AccountService
from breath_flow_server.services.dashboard import DashboardService
from breath_flow_server.services.feedback import FeedbackService
from breath_flow_server.services.patterns import PatternService
from breath_flow_server.services.profiles import ProfileService
from breath_flow_server.services.recorder import SessionRecorder
from breath_flow_server.services.reminders import ReminderNotifier, ReminderService
from breath_flow_server.services.sessions import SessionManager, get_session_manager
from breath_flow_server.services.stats import StatsAggregator, StatsUpdate

__all__ = [
    "AccountService",
    "DashboardService",
    "FeedbackService",
    "PatternService",
    "ProfileService",
    "ReminderNotifier",
    "ReminderService",
    "SessionManager",
    "SessionRecorder",
    "StatsAggregator",
    "StatsUpdate",
    "get_session_manager",
]
