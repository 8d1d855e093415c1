"""App feedback: one rating per user, moderated before it is shown."""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.errors import DuplicateResource, InvalidProfile, ResourceNotFound
from breath_flow_server.models.feedback import MAX_FEEDBACK_LENGTH, Feedback
from breath_flow_server.models.user import User

logger = structlog.get_logger()

# Public list shows only approved, public entries with at least this rating
PUBLIC_MIN_RATING = 4
PUBLIC_LIMIT = 6


class FeedbackService:
    """Collects feedback and serves the public testimonial list."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.logger = logger.bind(service="feedback")

    async def submit(self, user_id: str, rating: int, text: str) -> Feedback:
        """Store the user's feedback, pending moderation.

        Raises:
            InvalidProfile: Rating outside 1..5, or empty or overlong text
            DuplicateResource: The user already submitted feedback
            ResourceNotFound: Unknown user
        """
        text = text.strip()
        if not 1 <= rating <= 5:
            raise InvalidProfile("Rating must be between 1 and 5")
        if not text or len(text) > MAX_FEEDBACK_LENGTH:
            raise InvalidProfile(f"Feedback must be 1 to {MAX_FEEDBACK_LENGTH} characters")

        user = await self.session.get(User, user_id)
        if user is None:
            raise ResourceNotFound(f"User '{user_id}' not found")
        if await self.my_feedback(user_id) is not None:
            raise DuplicateResource("Feedback already submitted")

        feedback = Feedback(
            user_id=user_id, name=user.name, email=user.email, rating=rating, text=text
        )
        self.session.add(feedback)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateResource("Feedback already submitted") from None

        self.logger.info("Feedback submitted", user_id=user_id, rating=rating)
        return feedback

    async def my_feedback(self, user_id: str) -> Feedback | None:
        result = await self.session.execute(select(Feedback).where(Feedback.user_id == user_id))
        return result.scalar_one_or_none()

    async def public_feedback(self, limit: int = PUBLIC_LIMIT) -> list[Feedback]:
        """Approved public entries rated 4 or 5, newest first."""
        result = await self.session.execute(
            select(Feedback)
            .where(
                Feedback.is_approved.is_(True),
                Feedback.is_public.is_(True),
                Feedback.rating >= PUBLIC_MIN_RATING,
            )
            .order_by(Feedback.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def moderate(self, feedback_id: str, *, approved: bool, public: bool) -> Feedback:
        """Approve or hide an entry.

        Raises:
            ResourceNotFound: Unknown id
        """
        feedback = await self.session.get(Feedback, feedback_id)
        if feedback is None:
            raise ResourceNotFound(f"Feedback '{feedback_id}' not found")

        feedback.is_approved = approved
        feedback.is_public = public
        await self.session.commit()

        self.logger.info(
            "Feedback moderated", feedback_id=feedback_id, approved=approved, public=public
        )
        return feedback
