"""Custom breathing pattern service."""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.pattern import PRESETS, Pattern, get_preset
from breath_flow_server.errors import DuplicateResource, InvalidSessionRequest, ResourceNotFound
from breath_flow_server.models.pattern import BreathingPattern

logger = structlog.get_logger()


class PatternService:
    """Owner-scoped CRUD for custom patterns, plus preset lookup.

    Custom patterns are visible to and editable by their owner only.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize pattern service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="patterns")

    async def list_patterns(self, user_id: str) -> list[BreathingPattern]:
        """Custom patterns of a user, newest first."""
        result = await self.session.execute(
            select(BreathingPattern)
            .where(BreathingPattern.user_id == user_id)
            .order_by(BreathingPattern.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_pattern(self, user_id: str, pattern_id: str) -> BreathingPattern:
        """Fetch one custom pattern.

        Raises:
            ResourceNotFound: Unknown id, or owned by another user
        """
        result = await self.session.execute(
            select(BreathingPattern).where(
                BreathingPattern.id == pattern_id,
                BreathingPattern.user_id == user_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise ResourceNotFound(f"Pattern '{pattern_id}' not found")
        return row

    async def create_pattern(
        self,
        user_id: str,
        *,
        name: str,
        inhale_seconds: int,
        hold_seconds: int,
        exhale_seconds: int,
        hold_out_seconds: int = 0,
        description: str = "",
    ) -> BreathingPattern:
        """Validate and store a new custom pattern.

        Raises:
            InvalidPattern: Durations or name out of range
            DuplicateResource: The user already has a pattern with this name
        """
        pattern = Pattern.create(
            name,
            inhale_seconds,
            hold_seconds,
            exhale_seconds,
            hold_out_seconds,
            owner_id=user_id,
            description=description,
        )
        row = BreathingPattern(user_id=user_id)
        self._copy_into(row, pattern)
        self.session.add(row)
        await self._commit(user_id, pattern.name)

        self.logger.info(
            "Pattern created", user_id=user_id, pattern_id=row.id, signature=pattern.signature
        )
        return row

    async def replace_pattern(
        self,
        user_id: str,
        pattern_id: str,
        *,
        name: str,
        inhale_seconds: int,
        hold_seconds: int,
        exhale_seconds: int,
        hold_out_seconds: int = 0,
        description: str = "",
    ) -> BreathingPattern:
        """Overwrite every field of an owned pattern.

        Session records keep their own snapshot, so history is unaffected.

        Raises:
            ResourceNotFound: Unknown id, or owned by another user
            InvalidPattern: Durations or name out of range
            DuplicateResource: Another pattern of this user has the name
        """
        row = await self.get_pattern(user_id, pattern_id)
        pattern = Pattern.create(
            name,
            inhale_seconds,
            hold_seconds,
            exhale_seconds,
            hold_out_seconds,
            owner_id=user_id,
            description=description,
        )
        self._copy_into(row, pattern)
        await self._commit(user_id, pattern.name)

        self.logger.info("Pattern replaced", user_id=user_id, pattern_id=row.id)
        return row

    async def delete_pattern(self, user_id: str, pattern_id: str) -> None:
        """Delete an owned pattern.

        Raises:
            ResourceNotFound: Unknown id, or owned by another user
        """
        row = await self.get_pattern(user_id, pattern_id)
        await self.session.delete(row)
        await self.session.commit()
        self.logger.info("Pattern deleted", user_id=user_id, pattern_id=pattern_id)

    async def resolve(
        self,
        user_id: str,
        *,
        preset: str | None = None,
        pattern_id: str | None = None,
        inline: dict[str, int] | None = None,
    ) -> Pattern:
        """Pick the pattern a session should run.

        Exactly one of ``preset``, ``pattern_id`` or ``inline`` may be
        given; with none, the default preset is used.

        Raises:
            InvalidSessionRequest: More than one source, or unknown preset
            ResourceNotFound: Custom pattern not found for this user
            InvalidPattern: Inline durations out of range
        """
        sources = [s for s in (preset, pattern_id, inline) if s is not None]
        if len(sources) > 1:
            raise InvalidSessionRequest("Choose one of preset, pattern_id or inline pattern")

        if pattern_id is not None:
            row = await self.get_pattern(user_id, pattern_id)
            return row.to_pattern()

        if inline is not None:
            return Pattern.create(
                "Custom",
                inline.get("inhale_seconds", 0),
                inline.get("hold_seconds", 0),
                inline.get("exhale_seconds", 0),
                inline.get("hold_out_seconds", 0),
            )

        slug = preset or "default"
        try:
            return get_preset(slug)
        except KeyError:
            raise InvalidSessionRequest(
                f"Unknown preset '{slug}'", available=sorted(PRESETS)
            ) from None

    @staticmethod
    def _copy_into(row: BreathingPattern, pattern: Pattern) -> None:
        row.name = pattern.name
        row.description = pattern.description
        row.inhale_seconds = pattern.inhale_seconds
        row.hold_seconds = pattern.hold_seconds
        row.exhale_seconds = pattern.exhale_seconds
        row.hold_out_seconds = pattern.hold_out_seconds

    async def _commit(self, user_id: str, name: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateResource(f"You already have a pattern named '{name}'") from None
