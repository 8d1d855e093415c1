"""Tests for accounts, passwords and API keys."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.api_keys import (
    KEY_PREFIX,
    generate_api_key,
    hash_key,
    revoke_api_key,
    validate_api_key,
)
from breath_flow_server.core.password import hash_password, verify_password
from breath_flow_server.errors import DuplicateResource, InvalidCredentials
from breath_flow_server.services.accounts import AccountService

TEST_PASSWORD = "correct-horse-battery"  # matches the password_hash fixture


class TestApiKeys:
    """Tests for key generation and lookup."""

    def test_key_format(self):
        key = generate_api_key()

        assert key.raw_key.startswith(KEY_PREFIX)
        assert len(key.raw_key) == 44
        assert key.key_prefix == key.raw_key[:12]
        assert key.key_hash == hash_key(key.raw_key)

    def test_keys_are_unique(self):
        assert generate_api_key().raw_key != generate_api_key().raw_key

    async def test_validate_and_revoke(self, async_session: AsyncSession, user_api_key):
        _, raw_key = user_api_key

        found = await validate_api_key(raw_key, async_session)
        assert found is not None
        assert found.user_id == "test-user-uuid-1"
        assert found.last_used_at is not None

        assert await revoke_api_key(raw_key, async_session) is True
        assert await revoke_api_key(raw_key, async_session) is False
        assert await validate_api_key(raw_key, async_session) is None

    async def test_unknown_key(self, async_session: AsyncSession):
        assert await validate_api_key("bfk_" + "0" * 40, async_session) is None


class TestPasswords:
    def test_hash_and_verify(self, password_hash: str):
        assert verify_password(TEST_PASSWORD, password_hash)
        assert not verify_password("wrong-password", password_hash)

    def test_short_password_rejected(self):
        with pytest.raises(ValueError):
            hash_password("short")


class TestAccountService:
    """Tests for register, login and logout."""

    async def test_register_issues_key(self, async_session: AsyncSession):
        user, raw_key = await AccountService(async_session).register(
            "  Lin ", "Lin@Example.com", "a-long-password"
        )

        assert user.name == "Lin"
        assert user.email == "lin@example.com"
        key = await validate_api_key(raw_key, async_session)
        assert key.user_id == user.id

    async def test_duplicate_email_rejected(self, async_session: AsyncSession, test_user):
        with pytest.raises(DuplicateResource):
            await AccountService(async_session).register("Ada", "ADA@example.com", "another-pass")

    async def test_login(self, async_session: AsyncSession, test_user):
        user, raw_key = await AccountService(async_session).login("ada@example.com", TEST_PASSWORD)

        assert user.id == "test-user-uuid-1"
        assert raw_key.startswith(KEY_PREFIX)

    @pytest.mark.parametrize(
        ("email", "password"),
        [("ada@example.com", "wrong-password"), ("nobody@example.com", TEST_PASSWORD)],
    )
    async def test_login_rejected(self, async_session: AsyncSession, test_user, email, password):
        with pytest.raises(InvalidCredentials):
            await AccountService(async_session).login(email, password)

    async def test_inactive_user_cannot_login(self, async_session: AsyncSession, test_user):
        test_user.is_active = False
        await async_session.commit()

        with pytest.raises(InvalidCredentials):
            await AccountService(async_session).login("ada@example.com", TEST_PASSWORD)

    async def test_logout_revokes_presented_key(self, async_session: AsyncSession, test_user):
        service = AccountService(async_session)
        _, first = await service.login("ada@example.com", TEST_PASSWORD)
        _, second = await service.login("ada@example.com", TEST_PASSWORD)

        assert await service.logout(first) is True

        assert await validate_api_key(first, async_session) is None
        assert await validate_api_key(second, async_session) is not None
