"""Dashboard endpoints."""

from typing import Any

from litestar import Router, get
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.services.dashboard import MAX_ACTIVITY_DAYS, DashboardService


@get("/users/{user_id:str}/dashboard/summary", status_code=HTTP_200_OK)
async def get_summary(user_id: str, session: AsyncSession) -> dict[str, Any]:
    """Today, this week vs last week, and all-time figures."""
    return await DashboardService(session).summary(user_id)


@get("/users/{user_id:str}/dashboard/activity", status_code=HTTP_200_OK)
async def get_activity(
    user_id: str,
    session: AsyncSession,
    days: int = Parameter(default=MAX_ACTIVITY_DAYS, ge=1, le=MAX_ACTIVITY_DAYS),
) -> list[dict[str, Any]]:
    """Per-day session counts for a calendar heatmap, oldest first."""
    return await DashboardService(session).activity(user_id, days=days)


@get("/users/{user_id:str}/dashboard/pattern-usage", status_code=HTTP_200_OK)
async def get_pattern_usage(user_id: str, session: AsyncSession) -> list[dict[str, Any]]:
    """Completed sessions grouped by pattern timing, most used first."""
    return await DashboardService(session).pattern_usage(user_id)


@get("/users/{user_id:str}/dashboard/insights", status_code=HTTP_200_OK)
async def get_insights(user_id: str, session: AsyncSession) -> list[dict[str, str]]:
    """Personalized practice insights."""
    insights = await DashboardService(session).insights(user_id)
    return [insight.to_dict() for insight in insights]


dashboard_router = Router(
    path="/",
    route_handlers=[get_summary, get_activity, get_pattern_usage, get_insights],
    guards=[user_key_guard],
    tags=["Dashboard"],
)
