"""Stats and achievements endpoints."""

from typing import Any

from litestar import Router, get, post
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.achievements import ACHIEVEMENTS, next_session_milestone
from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.schemas.breathing import StatsResponse
from breath_flow_server.services.stats import StatsAggregator


@get("/users/{user_id:str}/stats", status_code=HTTP_200_OK)
async def get_stats(user_id: str, session: AsyncSession) -> StatsResponse:
    """Totals, current and longest streak, and unlocked achievements."""
    stats, achievements = await StatsAggregator(session).get_user_stats(user_id)
    return StatsResponse(
        **stats.to_dict(),
        next_milestone=next_session_milestone(stats.total_sessions),
        achievements=[a.to_dict() for a in achievements],
    )


@get("/users/{user_id:str}/achievements", status_code=HTTP_200_OK)
async def list_achievements(user_id: str, session: AsyncSession) -> list[dict[str, Any]]:
    """Every achievement with its threshold and whether the user has it."""
    _, unlocked = await StatsAggregator(session).get_user_stats(user_id)
    unlocked_at = {a.key: a.unlocked_at for a in unlocked}
    return [
        {
            "key": d.key,
            "name": d.name,
            "icon": d.icon,
            "description": d.description,
            "type": d.type.value,
            "count": d.count,
            "unlocked": d.key in unlocked_at,
            "unlocked_at": unlocked_at[d.key].isoformat() if d.key in unlocked_at else None,
        }
        for d in ACHIEVEMENTS
    ]


@post("/users/{user_id:str}/sessions/records/{record_id:str}/apply-stats", status_code=HTTP_200_OK)
async def apply_record_stats(user_id: str, record_id: str, session: AsyncSession) -> dict[str, Any]:
    """Apply a saved session's stats if they never landed.

    Idempotent: a record already counted returns ``applied: false``.
    """
    update = await StatsAggregator(session).apply_stats(user_id, record_id)
    return {
        "applied": update.applied,
        "stats": update.stats.to_dict(),
        "new_achievements": [a.to_dict() for a in update.new_achievements],
    }


stats_router = Router(
    path="/",
    route_handlers=[get_stats, list_achievements, apply_record_stats],
    guards=[user_key_guard],
    tags=["Stats"],
)
