"""API routes."""

from litestar import Router

from breath_flow_server.api.auth import auth_router
from breath_flow_server.api.dashboard import dashboard_router
from breath_flow_server.api.feedback import feedback_router, public_feedback_router
from breath_flow_server.api.health import health_router
from breath_flow_server.api.patterns import patterns_router, presets_router
from breath_flow_server.api.profile import profile_router
from breath_flow_server.api.reminders import reminders_router
from breath_flow_server.api.sessions import sessions_router
from breath_flow_server.api.stats import stats_router
from breath_flow_server.core.config import settings

# Versioned API routers
# These get the /api/v1 prefix
_v1_routers = [
    auth_router,  # Register, login (public), logout and me
    presets_router,  # Public preset list
    public_feedback_router,  # Public testimonials
    profile_router,
    patterns_router,
    sessions_router,
    stats_router,
    dashboard_router,
    reminders_router,
    feedback_router,
]

api_v1_router = Router(path=settings.api_prefix, route_handlers=_v1_routers)

# - health_router: /health - no auth needed, no version prefix
# - api_v1_router: /api/v1/* - everything else
api_routers = [health_router, api_v1_router]

__all__ = ["api_routers"]
