"""Account profile, notification preferences and password changes.

Writes go through the user row's optimistic lock, the same one the stats
aggregator uses, so a profile edit never overwrites a concurrent stats
update (or the reverse): the loser gets ``ConcurrentModification``.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from breath_flow_server.core.api_keys import issue_api_key, revoke_user_keys
from breath_flow_server.core.password import hash_password, verify_password
from breath_flow_server.errors import (
    ConcurrentModification,
    DuplicateResource,
    InvalidCredentials,
    InvalidProfile,
    ResourceNotFound,
)
from breath_flow_server.models.user import User

logger = structlog.get_logger()

PREFERENCE_FIELDS = ("notifications", "daily_reminders", "achievement_alerts", "email_updates")


class ProfileService:
    """Reads and edits the owner's own account."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize profile service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="profiles")

    async def get_user(self, user_id: str) -> User:
        """Fetch an active account.

        Raises:
            ResourceNotFound: Unknown or deactivated user
        """
        user = await self.session.get(User, user_id)
        if user is None or not user.is_active:
            raise ResourceNotFound(f"User '{user_id}' not found")
        return user

    async def update_profile(
        self,
        user_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        location: str | None = None,
        avatar: str | None = None,
    ) -> User:
        """Change the fields that were given; ``None`` leaves a field alone.

        Empty phone, location or avatar clears it.

        Raises:
            InvalidProfile: Blank name
            DuplicateResource: Email belongs to another account
            ConcurrentModification: The row changed while we edited it
        """
        user = await self.get_user(user_id)

        if name is not None:
            if not name.strip():
                raise InvalidProfile("Name is required")
            user.name = name.strip()

        if email is not None:
            email = email.strip().lower()
            if email != user.email:
                taken = await self.session.execute(
                    select(User.id).where(User.email == email, User.id != user_id)
                )
                if taken.first() is not None:
                    raise DuplicateResource("Email already in use")
                user.email = email

        if phone is not None:
            user.phone = phone.strip() or None
        if location is not None:
            user.location = location.strip() or None
        if avatar is not None:
            user.avatar = avatar.strip() or None

        await self._commit(user_id)
        self.logger.info("Profile updated", user_id=user_id)
        return user

    async def update_preferences(self, user_id: str, **changes: bool | None) -> dict[str, bool]:
        """Set the given preference flags and return all of them.

        Raises:
            InvalidProfile: Unknown preference name
        """
        unknown = sorted(set(changes) - set(PREFERENCE_FIELDS))
        if unknown:
            raise InvalidProfile(f"Unknown preferences: {', '.join(unknown)}", allowed=PREFERENCE_FIELDS)

        user = await self.get_user(user_id)
        for field, value in changes.items():
            if value is not None:
                setattr(user, field, bool(value))

        await self._commit(user_id)
        self.logger.info("Preferences updated", user_id=user_id, **user.preferences)
        return user.preferences

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> str:
        """Replace the password and sign out every other client.

        All existing keys are revoked and one new key is issued.

        Returns:
            The new raw API key

        Raises:
            InvalidCredentials: Current password is wrong
            InvalidProfile: New password too short
        """
        user = await self.get_user(user_id)
        if not verify_password(current_password, user.password_hash):
            self.logger.warning("Password change rejected", user_id=user_id)
            raise InvalidCredentials("Current password is incorrect")

        try:
            user.password_hash = hash_password(new_password)
        except ValueError as e:
            raise InvalidProfile(str(e)) from None

        revoked = await revoke_user_keys(user_id, self.session)
        _, raw_key = await issue_api_key(user_id, "password-change", self.session)
        await self._commit(user_id)

        self.logger.info("Password changed", user_id=user_id, revoked_keys=revoked)
        return raw_key

    async def _commit(self, user_id: str) -> None:
        try:
            await self.session.commit()
        except StaleDataError:
            await self.session.rollback()
            self.logger.warning("Profile write lost a race", user_id=user_id)
            raise ConcurrentModification("Account changed concurrently; retry") from None
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateResource("Email already in use") from None
