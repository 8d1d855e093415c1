"""Practice reminders: CRUD and minute-by-minute dispatch."""

import re
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.config import settings
from breath_flow_server.errors import InvalidReminder, ResourceNotFound
from breath_flow_server.models.base import ensure_utc, utcnow
from breath_flow_server.models.reminder import WEEKDAYS, Reminder
from breath_flow_server.models.user import User

logger = structlog.get_logger()

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_reminder(time: str, days: list[str] | None) -> tuple[str, list[str]]:
    """Normalize a reminder schedule.

    Returns:
        Tuple of ("HH:MM", weekdays in Mon..Sun order)

    Raises:
        InvalidReminder: Malformed time, unknown or empty weekday list
    """
    time = (time or "").strip()
    if not TIME_PATTERN.match(time):
        raise InvalidReminder("time must be HH:MM (24-hour)", time=time)

    if days is None:
        return time, list(WEEKDAYS)

    unknown = [d for d in days if d not in WEEKDAYS]
    if unknown:
        raise InvalidReminder(f"Unknown weekdays: {', '.join(unknown)}", allowed=WEEKDAYS)
    if not days:
        raise InvalidReminder("days must not be empty")

    return time, [d for d in WEEKDAYS if d in days]


class ReminderNotifier:
    """Delivers reminders.

    Delivery is a structured log entry; email transport is not configured in
    this service.
    """

    def __init__(self) -> None:
        self.logger = logger.bind(service="reminder_notifier")
        self.sent = 0

    async def notify(self, reminder: Reminder, user: User) -> None:
        self.sent += 1
        self.logger.info(
            "Reminder due",
            reminder_id=reminder.id,
            user_id=user.id,
            time=reminder.time,
            via_email=reminder.via_email and user.email_updates,
        )


class ReminderService:
    """Owner-scoped reminder management."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize reminder service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="reminders")

    async def list_reminders(self, user_id: str) -> list[Reminder]:
        result = await self.session.execute(
            select(Reminder).where(Reminder.user_id == user_id).order_by(Reminder.time)
        )
        return list(result.scalars().all())

    async def create_reminder(
        self,
        user_id: str,
        *,
        time: str,
        days: list[str] | None = None,
        enabled: bool = True,
        via_email: bool = False,
    ) -> Reminder:
        """Validate and store a reminder.

        Raises:
            InvalidReminder: Malformed schedule
        """
        time, days = validate_reminder(time, days)
        reminder = Reminder(
            user_id=user_id, time=time, days=days, enabled=enabled, via_email=via_email
        )
        self.session.add(reminder)
        await self.session.commit()

        self.logger.info("Reminder created", user_id=user_id, reminder_id=reminder.id, time=time)
        return reminder

    async def delete_reminder(self, user_id: str, reminder_id: str) -> None:
        """Delete an owned reminder.

        Raises:
            ResourceNotFound: Unknown id, or owned by another user
        """
        result = await self.session.execute(
            select(Reminder).where(Reminder.id == reminder_id, Reminder.user_id == user_id)
        )
        reminder = result.scalar_one_or_none()
        if reminder is None:
            raise ResourceNotFound(f"Reminder '{reminder_id}' not found")

        await self.session.delete(reminder)
        await self.session.commit()
        self.logger.info("Reminder deleted", user_id=user_id, reminder_id=reminder_id)

    async def due_reminders(self, now: datetime | None = None) -> list[Reminder]:
        """Enabled reminders scheduled for this minute and weekday.

        Times are wall-clock in the stats timezone. A reminder already sent
        this minute is not due again.
        """
        local_now = ensure_utc(now or utcnow()).astimezone(settings.get_stats_timezone())
        hhmm = local_now.strftime("%H:%M")
        weekday = WEEKDAYS[local_now.weekday()]
        minute_start = local_now.replace(second=0, microsecond=0)

        result = await self.session.execute(
            select(Reminder).where(Reminder.enabled.is_(True), Reminder.time == hhmm)
        )
        return [
            r
            for r in result.scalars().all()
            if weekday in r.days
            and (r.last_sent_at is None or ensure_utc(r.last_sent_at) < minute_start)
        ]

    async def dispatch_due(self, notifier: ReminderNotifier, now: datetime | None = None) -> int:
        """Notify every due reminder and stamp ``last_sent_at``.

        Users who turned daily reminders off are skipped and their reminders
        stay unsent.

        Returns:
            Number of reminders sent
        """
        now = now or utcnow()
        sent = 0
        for reminder in await self.due_reminders(now):
            user = await self.session.get(User, reminder.user_id)
            if user is None or not user.is_active or not user.daily_reminders:
                continue
            await notifier.notify(reminder, user)
            reminder.last_sent_at = now
            sent += 1

        await self.session.commit()
        return sent
