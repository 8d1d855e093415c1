"""Tests for custom pattern storage and session pattern resolution."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.errors import (
    DuplicateResource,
    InvalidPattern,
    InvalidSessionRequest,
    ResourceNotFound,
)
from breath_flow_server.services.patterns import PatternService

USER_ID = "test-user-uuid-1"
OTHER_ID = "test-user-uuid-2"


async def create(session: AsyncSession, user_id: str = USER_ID, name: str = "Evening", **timing):
    timing = {"inhale_seconds": 4, "hold_seconds": 2, "exhale_seconds": 6, **timing}
    return await PatternService(session).create_pattern(user_id, name=name, **timing)


class TestPatternCrud:
    """Tests for owner-scoped pattern CRUD."""

    async def test_create_and_list(self, async_session: AsyncSession, test_user):
        row = await create(async_session)

        patterns = await PatternService(async_session).list_patterns(USER_ID)

        assert [p.id for p in patterns] == [row.id]
        assert row.to_pattern().signature == "4-2-6"
        assert row.to_pattern().is_custom is True

    async def test_invalid_durations_not_stored(self, async_session: AsyncSession, test_user):
        with pytest.raises(InvalidPattern):
            await create(async_session, exhale_seconds=0)

        assert await PatternService(async_session).list_patterns(USER_ID) == []

    async def test_duplicate_name_rejected(self, async_session: AsyncSession, test_user):
        await create(async_session)

        with pytest.raises(DuplicateResource):
            await create(async_session, inhale_seconds=5)

        assert len(await PatternService(async_session).list_patterns(USER_ID)) == 1

    async def test_same_name_for_different_users(
        self, async_session: AsyncSession, test_user, test_user_2
    ):
        await create(async_session, USER_ID)
        await create(async_session, OTHER_ID)

        assert len(await PatternService(async_session).list_patterns(OTHER_ID)) == 1

    async def test_replace(self, async_session: AsyncSession, test_user):
        row = await create(async_session)

        updated = await PatternService(async_session).replace_pattern(
            USER_ID,
            row.id,
            name="Night",
            inhale_seconds=4,
            hold_seconds=4,
            exhale_seconds=4,
            hold_out_seconds=4,
        )

        assert updated.name == "Night"
        assert updated.to_pattern().signature == "4-4-4-4"

    async def test_foreign_pattern_is_invisible(
        self, async_session: AsyncSession, test_user, test_user_2
    ):
        row = await create(async_session, OTHER_ID)
        service = PatternService(async_session)

        with pytest.raises(ResourceNotFound):
            await service.get_pattern(USER_ID, row.id)
        with pytest.raises(ResourceNotFound):
            await service.delete_pattern(USER_ID, row.id)

    async def test_delete(self, async_session: AsyncSession, test_user):
        row = await create(async_session)
        service = PatternService(async_session)

        await service.delete_pattern(USER_ID, row.id)

        assert await service.list_patterns(USER_ID) == []


class TestResolve:
    """Tests for choosing the pattern a session runs."""

    async def test_default_preset(self, async_session: AsyncSession):
        pattern = await PatternService(async_session).resolve(USER_ID)

        assert pattern.signature == "5-2-7"

    async def test_named_preset(self, async_session: AsyncSession):
        pattern = await PatternService(async_session).resolve(USER_ID, preset="box")

        assert pattern.hold_out_seconds == 4

    async def test_unknown_preset(self, async_session: AsyncSession):
        with pytest.raises(InvalidSessionRequest) as exc_info:
            await PatternService(async_session).resolve(USER_ID, preset="nope")

        assert "box" in exc_info.value.details["available"]

    async def test_custom_pattern(self, async_session: AsyncSession, test_user):
        row = await create(async_session)

        pattern = await PatternService(async_session).resolve(USER_ID, pattern_id=row.id)

        assert pattern.name == "Evening"
        assert pattern.owner_id == USER_ID

    async def test_inline_pattern_validated(self, async_session: AsyncSession):
        service = PatternService(async_session)

        pattern = await service.resolve(
            USER_ID, inline={"inhale_seconds": 3, "hold_seconds": 0, "exhale_seconds": 3}
        )
        assert pattern.signature == "3-0-3"

        with pytest.raises(InvalidPattern):
            await service.resolve(USER_ID, inline={"inhale_seconds": 3, "exhale_seconds": 99})

    async def test_more_than_one_source_rejected(self, async_session: AsyncSession):
        with pytest.raises(InvalidSessionRequest):
            await PatternService(async_session).resolve(USER_ID, preset="box", pattern_id="x")
