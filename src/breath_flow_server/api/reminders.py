"""Reminder endpoints."""

from typing import Any

from litestar import Router, delete, get, post
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED, HTTP_204_NO_CONTENT
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.schemas.accounts import ReminderRequest
from breath_flow_server.services.reminders import ReminderService


@get("/users/{user_id:str}/reminders", status_code=HTTP_200_OK)
async def list_reminders(user_id: str, session: AsyncSession) -> list[dict[str, Any]]:
    reminders = await ReminderService(session).list_reminders(user_id)
    return [r.to_dict() for r in reminders]


@post("/users/{user_id:str}/reminders", status_code=HTTP_201_CREATED)
async def create_reminder(
    user_id: str,
    data: ReminderRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Schedule a daily practice reminder on the chosen weekdays."""
    reminder = await ReminderService(session).create_reminder(user_id, **data.model_dump())
    return reminder.to_dict()


@delete("/users/{user_id:str}/reminders/{reminder_id:str}", status_code=HTTP_204_NO_CONTENT)
async def delete_reminder(user_id: str, reminder_id: str, session: AsyncSession) -> None:
    await ReminderService(session).delete_reminder(user_id, reminder_id)


reminders_router = Router(
    path="/",
    route_handlers=[list_reminders, create_reminder, delete_reminder],
    guards=[user_key_guard],
    tags=["Reminders"],
)
