"""Profile, preferences and password endpoints for the key owner."""

from typing import Any

from litestar import Router, get, put
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.schemas.accounts import (
    ChangePasswordRequest,
    PreferencesRequest,
    ProfileUpdateRequest,
)
from breath_flow_server.services.profiles import ProfileService


@get("/users/{user_id:str}/profile", status_code=HTTP_200_OK)
async def get_profile(user_id: str, session: AsyncSession) -> dict[str, Any]:
    """Account details, preferences and stats."""
    user = await ProfileService(session).get_user(user_id)
    return user.profile_dict()


@put("/users/{user_id:str}/profile", status_code=HTTP_200_OK)
async def update_profile(
    user_id: str,
    data: ProfileUpdateRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Change name, email, phone, location or avatar. Omitted fields are kept."""
    user = await ProfileService(session).update_profile(user_id, **data.model_dump(exclude_none=True))
    return user.profile_dict()


@put("/users/{user_id:str}/preferences", status_code=HTTP_200_OK)
async def update_preferences(
    user_id: str,
    data: PreferencesRequest,
    session: AsyncSession,
) -> dict[str, bool]:
    return await ProfileService(session).update_preferences(
        user_id, **data.model_dump(exclude_none=True)
    )


@put("/users/{user_id:str}/password", status_code=HTTP_200_OK)
async def change_password(
    user_id: str,
    data: ChangePasswordRequest,
    session: AsyncSession,
) -> dict[str, str]:
    """Replace the password.

    Every existing key of the user is revoked; use the returned key from now on.
    """
    raw_key = await ProfileService(session).change_password(
        user_id, data.current_password, data.new_password
    )
    return {"api_key": raw_key}


profile_router = Router(
    path="/",
    route_handlers=[get_profile, update_profile, update_preferences, change_password],
    guards=[user_key_guard],
    tags=["Profile"],
)
