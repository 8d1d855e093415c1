"""Breathing pattern endpoints."""

from typing import Any

from litestar import Router, delete, get, post, put
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED, HTTP_204_NO_CONTENT
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.pattern import PRESETS
from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.models.pattern import BreathingPattern
from breath_flow_server.schemas.breathing import PatternRequest
from breath_flow_server.services.patterns import PatternService


def serialize_pattern(row: BreathingPattern) -> dict[str, Any]:
    return {
        "id": row.id,
        **row.to_pattern().to_dict(),
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


@get("/patterns/presets", status_code=HTTP_200_OK, sync_to_thread=False)
def list_presets() -> list[dict[str, Any]]:
    """Built-in patterns, available to everyone."""
    return [{"slug": slug, **pattern.to_dict()} for slug, pattern in PRESETS.items()]


@get("/users/{user_id:str}/patterns", status_code=HTTP_200_OK)
async def list_patterns(user_id: str, session: AsyncSession) -> list[dict[str, Any]]:
    """Custom patterns of the user, newest first."""
    rows = await PatternService(session).list_patterns(user_id)
    return [serialize_pattern(row) for row in rows]


@post("/users/{user_id:str}/patterns", status_code=HTTP_201_CREATED)
async def create_pattern(
    user_id: str,
    data: PatternRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Save a custom pattern.

    Inhale and exhale must be 1-60 seconds; holds 0-60 seconds. Names are
    unique per user.
    """
    row = await PatternService(session).create_pattern(user_id, **data.model_dump())
    return serialize_pattern(row)


@put("/users/{user_id:str}/patterns/{pattern_id:str}", status_code=HTTP_200_OK)
async def replace_pattern(
    user_id: str,
    pattern_id: str,
    data: PatternRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Replace every field of a custom pattern."""
    row = await PatternService(session).replace_pattern(user_id, pattern_id, **data.model_dump())
    return serialize_pattern(row)


@delete("/users/{user_id:str}/patterns/{pattern_id:str}", status_code=HTTP_204_NO_CONTENT)
async def delete_pattern(user_id: str, pattern_id: str, session: AsyncSession) -> None:
    """Delete a custom pattern. Past sessions keep their own copy of it."""
    await PatternService(session).delete_pattern(user_id, pattern_id)


presets_router = Router(path="/", route_handlers=[list_presets], tags=["Patterns"])

patterns_router = Router(
    path="/",
    route_handlers=[list_patterns, create_pattern, replace_pattern, delete_pattern],
    guards=[user_key_guard],
    tags=["Patterns"],
)
