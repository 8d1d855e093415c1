"""Litestar application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from advanced_alchemy.extensions.litestar import (
    AsyncSessionConfig,
    SQLAlchemyAsyncConfig,
    SQLAlchemyPlugin,
)
from litestar import Litestar, Request, Response
from litestar.openapi import OpenAPIConfig
from sqlalchemy.ext.asyncio import AsyncEngine

from breath_flow_server import __version__
from breath_flow_server.api import api_routers
from breath_flow_server.core.config import settings
from breath_flow_server.core.database import (
    async_session_maker,
    close_database,
    engine,
    init_database,
)
from breath_flow_server.errors import BreathFlowError
from breath_flow_server.routes import root_redirect
from breath_flow_server.services.scheduler import MaintenanceScheduler, set_scheduler

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def breath_flow_error_handler(request: Request, exc: BreathFlowError) -> Response[dict[str, object]]:
    """Render domain errors as JSON with their own status code."""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, detail=exc.message, details=exc.details)
    return Response(content=exc.to_dict(), status_code=exc.status_code)


@asynccontextmanager
async def lifespan(app: Litestar) -> AsyncIterator[None]:
    """Application lifespan manager.

    Handles startup and shutdown tasks:
    - Check the database schema on startup
    - Start the maintenance scheduler (session ticks, reminders, stats jobs)
    - Stop the scheduler and close database connections on shutdown
    """
    logger.info(
        "Starting breath-flow-server",
        version=__version__,
        session_clock=settings.session_clock.value,
        scheduler_enabled=settings.scheduler_enabled,
        stats_timezone=settings.stats_timezone,
    )

    await init_database()
    logger.info("Database initialized")

    scheduler = MaintenanceScheduler(async_session_maker)
    set_scheduler(scheduler)
    await scheduler.start()

    yield

    await scheduler.stop()
    set_scheduler(None)

    await close_database()
    logger.info("Shutdown complete")


def create_app(db_engine: AsyncEngine | None = None) -> Litestar:
    """Create Litestar application.

    Args:
        db_engine: Engine for request sessions (defaults to the configured one)

    Returns:
        Configured Litestar app instance
    """
    return Litestar(
        route_handlers=[root_redirect, *api_routers],
        lifespan=[lifespan],
        openapi_config=OpenAPIConfig(
            title="breath-flow-server API",
            version=__version__,
            description="Guided breathing sessions, streaks and achievements",
        ),
        plugins=[
            SQLAlchemyPlugin(
                config=SQLAlchemyAsyncConfig(
                    engine_instance=db_engine or engine,
                    session_dependency_key="session",
                    session_config=AsyncSessionConfig(expire_on_commit=False),
                ),
            ),
        ],
        exception_handlers={BreathFlowError: breath_flow_error_handler},
        debug=settings.log_level == "DEBUG",
    )


# Application instance
app = create_app()
