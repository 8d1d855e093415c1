"""Bearer-key authentication for user endpoints.

Every user endpoint carries the owning user id in its path
(``/users/{user_id}/...``). The guard resolves the presented key to a user
and rejects the request unless that user matches the path, so handlers
receive an explicit, already-authorized ``user_id``.

A config-level master key (``API_KEY``) may access every user; it is meant
for trusted backend jobs, never for end users.
"""

import logging
import secrets
from typing import Any

from litestar.connection import ASGIConnection
from litestar.exceptions import NotAuthorizedException, PermissionDeniedException
from litestar.handlers import BaseRouteHandler

from breath_flow_server.core.api_keys import validate_api_key
from breath_flow_server.core.config import settings

logger = logging.getLogger(__name__)

# Connection state key for the authenticated principal
AUTH_STATE_KEY = "auth"


def extract_api_key(connection: ASGIConnection[Any, Any, Any, Any]) -> str | None:
    """Extract the API key from X-API-Key or Authorization: Bearer."""
    api_key = connection.headers.get("X-API-Key")

    if not api_key:
        auth_header = connection.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            api_key = auth_header[7:]

    return api_key or None


async def user_key_guard(
    connection: ASGIConnection[Any, Any, Any, Any], _: BaseRouteHandler
) -> None:
    """Litestar guard resolving the bearer key to the path's user.

    Raises:
        NotAuthorizedException: Missing, unknown or revoked key
        PermissionDeniedException: Key belongs to a different user
    """
    raw_key = extract_api_key(connection)
    if not raw_key:
        raise NotAuthorizedException("Missing API key. Use Authorization: Bearer <key>.")

    path_user_id = connection.path_params.get("user_id")

    if settings.api_key and secrets.compare_digest(raw_key, settings.api_key):
        logger.debug("Master API key validated")
        connection.state[AUTH_STATE_KEY] = {"user_id": path_user_id, "is_master": True}
        return

    from breath_flow_server.core.database import async_session_maker

    async with async_session_maker() as session:
        api_key = await validate_api_key(raw_key, session)
        if api_key is None:
            logger.warning("Invalid or revoked API key attempted")
            raise NotAuthorizedException("Invalid API key")

        if path_user_id and api_key.user_id != path_user_id:
            logger.warning(f"API key for user {api_key.user_id} attempted to access user {path_user_id}")
            raise PermissionDeniedException("API key not authorized for this user")

        await session.commit()

        connection.state[AUTH_STATE_KEY] = {"user_id": api_key.user_id, "is_master": False}
        logger.debug(f"API key validated: id={api_key.id}")
