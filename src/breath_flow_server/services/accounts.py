"""Account registration and login.

Each successful register or login issues a fresh bearer key; logout revokes
the key that was presented.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.api_keys import issue_api_key, revoke_api_key
from breath_flow_server.core.password import hash_password, needs_rehash, verify_password
from breath_flow_server.errors import DuplicateResource, InvalidCredentials
from breath_flow_server.models.user import User

logger = structlog.get_logger()


class AccountService:
    """Creates users and hands out their API keys."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize account service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="accounts")

    async def register(self, name: str, email: str, password: str) -> tuple[User, str]:
        """Create an account and issue its first key.

        Returns:
            Tuple of (User, raw API key)

        Raises:
            ValueError: Password too short
            DuplicateResource: Email already registered
        """
        email = email.strip().lower()
        if await self._find_by_email(email) is not None:
            raise DuplicateResource("An account with this email already exists")

        user = User(name=name.strip(), email=email, password_hash=hash_password(password))
        self.session.add(user)
        try:
            await self.session.flush()
            _, raw_key = await issue_api_key(user.id, "register", self.session)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateResource("An account with this email already exists") from None

        self.logger.info("User registered", user_id=user.id)
        return user, raw_key

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and issue a new key.

        Raises:
            InvalidCredentials: Unknown email, wrong password or inactive account
        """
        user = await self._find_by_email(email.strip().lower())
        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            self.logger.warning("Login failed")
            raise InvalidCredentials("Invalid email or password")

        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)

        _, raw_key = await issue_api_key(user.id, "login", self.session)
        await self.session.commit()

        self.logger.info("User logged in", user_id=user.id)
        return user, raw_key

    async def logout(self, raw_key: str) -> bool:
        """Revoke the presented key. Returns False if it was not active."""
        revoked = await revoke_api_key(raw_key, self.session)
        await self.session.commit()
        return revoked

    async def get_user(self, user_id: str) -> User | None:
        return await self.session.get(User, user_id)

    async def _find_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()
