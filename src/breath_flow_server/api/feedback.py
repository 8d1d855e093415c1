"""Feedback endpoints."""

from typing import Any

from litestar import Router, get, post
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.schemas.accounts import FeedbackRequest
from breath_flow_server.services.feedback import FeedbackService


@post("/users/{user_id:str}/feedback", status_code=HTTP_201_CREATED)
async def submit_feedback(
    user_id: str,
    data: FeedbackRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Rate the app once. Entries appear publicly only after moderation."""
    feedback = await FeedbackService(session).submit(user_id, data.rating, data.feedback)
    return feedback.to_dict()


@get("/users/{user_id:str}/feedback", status_code=HTTP_200_OK)
async def my_feedback(user_id: str, session: AsyncSession) -> dict[str, Any]:
    feedback = await FeedbackService(session).my_feedback(user_id)
    return {"submitted": feedback is not None, "feedback": feedback.to_dict() if feedback else None}


@get("/feedback/public", status_code=HTTP_200_OK)
async def public_feedback(session: AsyncSession) -> list[dict[str, Any]]:
    """Latest approved 4 and 5 star testimonials."""
    return [f.to_public_dict() for f in await FeedbackService(session).public_feedback()]


feedback_router = Router(
    path="/",
    route_handlers=[submit_feedback, my_feedback],
    guards=[user_key_guard],
    tags=["Feedback"],
)

public_feedback_router = Router(path="/", route_handlers=[public_feedback], tags=["Feedback"])
