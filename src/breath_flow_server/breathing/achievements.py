"""Achievement thresholds and unlock evaluation."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from breath_flow_server.breathing.streaks import UserStats


class ThresholdType(str, Enum):
    """Which counter an achievement is measured against."""

    SESSIONS = "sessions"
    STREAK = "streak"
    MINUTES = "minutes"


@dataclass(frozen=True)
class AchievementDefinition:
    key: str
    name: str
    icon: str
    description: str
    type: ThresholdType
    count: int

    def is_met(self, stats: UserStats) -> bool:
        if self.type == ThresholdType.SESSIONS:
            return stats.total_sessions >= self.count
        if self.type == ThresholdType.STREAK:
            return stats.streak_days >= self.count
        return stats.total_minutes >= self.count


ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition("first_breath", "First Breath", "🌱", "Complete your first session", ThresholdType.SESSIONS, 1),
    AchievementDefinition("getting_started", "Getting Started", "🌿", "Complete 5 sessions", ThresholdType.SESSIONS, 5),
    AchievementDefinition("dedicated", "Dedicated", "🌳", "Complete 10 sessions", ThresholdType.SESSIONS, 10),
    AchievementDefinition("committed", "Committed", "🏆", "Complete 25 sessions", ThresholdType.SESSIONS, 25),
    AchievementDefinition("breathing_master", "Breathing Master", "⭐", "Complete 50 sessions", ThresholdType.SESSIONS, 50),
    AchievementDefinition("zen_master", "Zen Master", "🧘", "Complete 100 sessions", ThresholdType.SESSIONS, 100),
    AchievementDefinition("streak_3", "3-Day Streak", "🔥", "Practice 3 days in a row", ThresholdType.STREAK, 3),
    AchievementDefinition("week_warrior", "Week Warrior", "💪", "Practice 7 days in a row", ThresholdType.STREAK, 7),
    AchievementDefinition("two_week_champion", "Two Week Champion", "🏅", "Practice 14 days in a row", ThresholdType.STREAK, 14),
    AchievementDefinition("monthly_meditator", "Monthly Meditator", "🌟", "Practice 30 days in a row", ThresholdType.STREAK, 30),
    AchievementDefinition("hour_of_peace", "Hour of Peace", "⏰", "Complete 60 minutes total", ThresholdType.MINUTES, 60),
    AchievementDefinition("time_investment", "Time Investment", "⌛", "Complete 300 minutes total", ThresholdType.MINUTES, 300),
    AchievementDefinition("dedication_master", "Dedication Master", "💎", "Complete 1000 minutes total", ThresholdType.MINUTES, 1000),
)  # fmt: skip

SESSION_MILESTONES = (5, 10, 25, 50, 100, 200, 500, 1000)


def evaluate_achievements(
    stats: UserStats,
    unlocked_keys: Iterable[str],
    definitions: Iterable[AchievementDefinition] = ACHIEVEMENTS,
) -> list[AchievementDefinition]:
    """Return definitions whose threshold is met and which are not yet unlocked.

    Pure and idempotent: once the caller records the returned keys, running
    again with the same stats returns nothing.
    """
    unlocked = set(unlocked_keys)
    newly_unlocked = []
    for definition in definitions:
        if definition.key in unlocked:
            continue
        if definition.is_met(stats):
            newly_unlocked.append(definition)
            unlocked.add(definition.key)
    return newly_unlocked


def next_session_milestone(total_sessions: int) -> int | None:
    """Smallest session milestone not yet reached, or None past the last."""
    for milestone in SESSION_MILESTONES:
        if total_sessions < milestone:
            return milestone
    return None
