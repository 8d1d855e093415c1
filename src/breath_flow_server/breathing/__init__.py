"""Breathing domain: patterns, the phase engine, streaks and achievements.

Everything here is pure Python with no database or HTTP access.
"""

from breath_flow_server.breathing.achievements import (
    ACHIEVEMENTS,
    AchievementDefinition,
    evaluate_achievements,
)
from breath_flow_server.breathing.engine import (
    EngineSnapshot,
    EngineState,
    PhaseEngine,
    StopResult,
)
from breath_flow_server.breathing.pattern import PRESETS, Pattern, Phase, get_preset
from breath_flow_server.breathing.streaks import UserStats, apply_completed_session, decay_streak

__all__ = [
    "ACHIEVEMENTS",
    "AchievementDefinition",
    "EngineSnapshot",
    "EngineState",
    "PRESETS",
    "Pattern",
    "Phase",
    "PhaseEngine",
    "StopResult",
    "UserStats",
    "apply_completed_session",
    "decay_streak",
    "evaluate_achievements",
    "get_preset",
]
