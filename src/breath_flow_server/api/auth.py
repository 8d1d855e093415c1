"""Account endpoints: register, login, logout, current user."""

from typing import Any

from litestar import Request, Router, get, post
from litestar.exceptions import NotAuthorizedException
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.auth import AUTH_STATE_KEY, extract_api_key, user_key_guard
from breath_flow_server.schemas.accounts import AuthResponse, LoginRequest, RegisterRequest
from breath_flow_server.services.accounts import AccountService
from breath_flow_server.services.profiles import ProfileService


@post("/auth/register", status_code=HTTP_201_CREATED)
async def register(data: RegisterRequest, session: AsyncSession) -> AuthResponse:
    """Create an account and return its first API key.

    The key is shown only in this response.
    """
    user, raw_key = await AccountService(session).register(data.name, data.email, data.password)
    return AuthResponse(user_id=user.id, name=user.name, email=user.email, api_key=raw_key)


@post("/auth/login", status_code=HTTP_200_OK)
async def login(data: LoginRequest, session: AsyncSession) -> AuthResponse:
    """Exchange email and password for a new API key."""
    user, raw_key = await AccountService(session).login(data.email, data.password)
    return AuthResponse(user_id=user.id, name=user.name, email=user.email, api_key=raw_key)


@post("/auth/logout", status_code=HTTP_200_OK, guards=[user_key_guard])
async def logout(request: Request, session: AsyncSession) -> dict[str, bool]:
    """Revoke the API key used for this request."""
    raw_key = extract_api_key(request)
    revoked = await AccountService(session).logout(raw_key) if raw_key else False
    return {"revoked": revoked}


@get("/auth/me", status_code=HTTP_200_OK, guards=[user_key_guard])
async def me(request: Request, session: AsyncSession) -> dict[str, Any]:
    """Profile of the key's owner; clients use it to learn their user id."""
    user_id = request.state[AUTH_STATE_KEY]["user_id"]
    if user_id is None:
        raise NotAuthorizedException("The master key does not belong to a user")
    user = await ProfileService(session).get_user(user_id)
    return user.profile_dict()


auth_router = Router(path="/", route_handlers=[register, login, logout, me], tags=["Auth"])
