"""Tests for profile edits, preferences, password changes and feedback."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from breath_flow_server.core.api_keys import validate_api_key
from breath_flow_server.core.password import verify_password
from breath_flow_server.errors import (
    ConcurrentModification,
    DuplicateResource,
    InvalidCredentials,
    InvalidProfile,
    ResourceNotFound,
)
from breath_flow_server.models.base import utcnow
from breath_flow_server.models.feedback import Feedback
from breath_flow_server.models.user import User
from breath_flow_server.services.feedback import FeedbackService
from breath_flow_server.services.profiles import ProfileService

USER_ID = "test-user-uuid-1"
TEST_PASSWORD = "correct-horse-battery"  # matches the password_hash fixture


class TestProfile:
    """Tests for reading and editing the profile."""

    async def test_defaults(self, async_session: AsyncSession, test_user):
        profile = (await ProfileService(async_session).get_user(USER_ID)).profile_dict()

        assert profile["name"] == "Ada"
        assert profile["phone"] is None
        assert profile["preferences"] == {
            "notifications": True,
            "daily_reminders": True,
            "achievement_alerts": True,
            "email_updates": False,
        }
        assert profile["stats"]["total_sessions"] == 0
        assert "password_hash" not in profile

    async def test_unknown_user(self, async_session: AsyncSession):
        with pytest.raises(ResourceNotFound):
            await ProfileService(async_session).get_user("missing")

    async def test_partial_update(self, async_session: AsyncSession, test_user):
        user = await ProfileService(async_session).update_profile(
            USER_ID, name="  Ada L. ", phone=" 555-0100 ", location="London"
        )

        assert user.name == "Ada L."
        assert user.phone == "555-0100"
        assert user.location == "London"
        assert user.email == "ada@example.com"

    async def test_empty_field_clears_it(self, async_session: AsyncSession, test_user):
        service = ProfileService(async_session)
        await service.update_profile(USER_ID, location="London")

        user = await service.update_profile(USER_ID, location="")

        assert user.location is None

    async def test_blank_name_rejected(self, async_session: AsyncSession, test_user):
        with pytest.raises(InvalidProfile):
            await ProfileService(async_session).update_profile(USER_ID, name="   ")

    async def test_email_normalized(self, async_session: AsyncSession, test_user):
        user = await ProfileService(async_session).update_profile(USER_ID, email="Ada@Example.ORG")

        assert user.email == "ada@example.org"

    async def test_email_taken_by_another_user(
        self, async_session: AsyncSession, test_user, test_user_2
    ):
        with pytest.raises(DuplicateResource):
            await ProfileService(async_session).update_profile(USER_ID, email="grace@example.com")

    async def test_stale_write_reported(self, async_session: AsyncSession, test_user):
        stale = StaleDataError("version mismatch")

        with patch.object(async_session, "commit", AsyncMock(side_effect=stale)):
            with pytest.raises(ConcurrentModification):
                await ProfileService(async_session).update_profile(USER_ID, name="Other")


class TestPreferences:
    async def test_only_given_flags_change(self, async_session: AsyncSession, test_user):
        prefs = await ProfileService(async_session).update_preferences(
            USER_ID, email_updates=True, daily_reminders=None
        )

        assert prefs == {
            "notifications": True,
            "daily_reminders": True,
            "achievement_alerts": True,
            "email_updates": True,
        }

    async def test_unknown_flag_rejected(self, async_session: AsyncSession, test_user):
        with pytest.raises(InvalidProfile):
            await ProfileService(async_session).update_preferences(USER_ID, dark_mode=True)


class TestChangePassword:
    """Tests for replacing the password."""

    async def test_change_revokes_old_keys(
        self, async_session: AsyncSession, test_user, user_api_key
    ):
        _, old_key = user_api_key

        new_key = await ProfileService(async_session).change_password(
            USER_ID, TEST_PASSWORD, "a-brand-new-secret"
        )

        assert await validate_api_key(old_key, async_session) is None
        assert (await validate_api_key(new_key, async_session)).user_id == USER_ID
        user = await ProfileService(async_session).get_user(USER_ID)
        assert verify_password("a-brand-new-secret", user.password_hash)

    async def test_wrong_current_password(
        self, async_session: AsyncSession, test_user, user_api_key
    ):
        _, old_key = user_api_key

        with pytest.raises(InvalidCredentials):
            await ProfileService(async_session).change_password(
                USER_ID, "not-my-password", "a-brand-new-secret"
            )

        assert await validate_api_key(old_key, async_session) is not None

    async def test_short_new_password(self, async_session: AsyncSession, test_user):
        with pytest.raises(InvalidProfile):
            await ProfileService(async_session).change_password(USER_ID, TEST_PASSWORD, "short")


class TestFeedback:
    """Tests for submitting and listing feedback."""

    async def test_submit_copies_account_details(self, async_session: AsyncSession, test_user):
        feedback = await FeedbackService(async_session).submit(USER_ID, 5, "  Lovely app  ")

        assert feedback.name == "Ada"
        assert feedback.email == "ada@example.com"
        assert feedback.text == "Lovely app"
        assert feedback.is_approved is False
        assert feedback.is_public is False

    async def test_one_feedback_per_user(self, async_session: AsyncSession, test_user):
        service = FeedbackService(async_session)
        await service.submit(USER_ID, 4, "Good")

        with pytest.raises(DuplicateResource):
            await service.submit(USER_ID, 5, "Changed my mind")

        assert (await service.my_feedback(USER_ID)).rating == 4

    @pytest.mark.parametrize(("rating", "text"), [(0, "ok"), (6, "ok"), (3, "   "), (3, "x" * 501)])
    async def test_invalid_feedback(self, async_session: AsyncSession, test_user, rating, text):
        with pytest.raises(InvalidProfile):
            await FeedbackService(async_session).submit(USER_ID, rating, text)

    async def test_no_feedback_yet(self, async_session: AsyncSession, test_user):
        assert await FeedbackService(async_session).my_feedback(USER_ID) is None

    async def test_public_list_shows_approved_high_ratings(
        self, async_session: AsyncSession, test_user, test_user_2
    ):
        service = FeedbackService(async_session)
        shown = await service.submit(USER_ID, 5, "Calmer every day")
        low = await service.submit("test-user-uuid-2", 3, "It is fine")
        await service.moderate(shown.id, approved=True, public=True)
        await service.moderate(low.id, approved=True, public=True)

        public = await service.public_feedback()

        assert [f.id for f in public] == [shown.id]
        assert public[0].to_public_dict()["name"] == "Ada"
        assert "email" not in public[0].to_public_dict()

    async def test_unapproved_feedback_hidden(self, async_session: AsyncSession, test_user):
        service = FeedbackService(async_session)
        await service.submit(USER_ID, 5, "Wonderful")

        assert await service.public_feedback() == []

    async def test_public_list_limited_and_newest_first(self, async_session: AsyncSession):
        base = utcnow()
        for i in range(8):
            async_session.add(
                User(id=f"u{i}", name=f"U{i}", email=f"u{i}@example.com", password_hash="x")
            )
        await async_session.flush()
        for i in range(8):
            async_session.add(
                Feedback(
                    user_id=f"u{i}",
                    name=f"U{i}",
                    email=f"u{i}@example.com",
                    rating=5,
                    text="Great",
                    is_approved=True,
                    is_public=True,
                    created_at=base + timedelta(minutes=i),
                )
            )
        await async_session.commit()

        public = await FeedbackService(async_session).public_feedback()

        assert [f.name for f in public] == ["U7", "U6", "U5", "U4", "U3", "U2"]

    async def test_moderate_unknown(self, async_session: AsyncSession):
        with pytest.raises(ResourceNotFound):
            await FeedbackService(async_session).moderate("missing", approved=True, public=True)

    async def test_feedback_deleted_with_user(self, async_session: AsyncSession, test_user):
        await FeedbackService(async_session).submit(USER_ID, 5, "Great")

        await async_session.delete(test_user)
        await async_session.commit()

        result = await async_session.execute(select(Feedback))
        assert result.scalars().all() == []
