"""Breathing session endpoints.

A session lives in server memory from ``start`` until it is saved. With the
server clock (default) the scheduler ticks it once per second; with the
client clock the client calls ``tick``. When the engine reaches a terminal
state the record is saved and stats are applied in the same request (or
scheduler run). A failed save answers 503 and keeps the session so
``save`` can be retried.
"""

from typing import Any

from litestar import Router, delete, get, post
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED, HTTP_204_NO_CONTENT
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.core.auth import user_key_guard
from breath_flow_server.core.config import settings
from breath_flow_server.errors import ClientClockDisabled, InvalidTransition
from breath_flow_server.schemas.breathing import StartSessionRequest, StopSessionRequest, TickRequest
from breath_flow_server.services.dashboard import DashboardService
from breath_flow_server.services.patterns import PatternService
from breath_flow_server.services.sessions import get_session_manager


@post("/users/{user_id:str}/sessions", status_code=HTTP_201_CREATED)
async def start_session(
    user_id: str,
    data: StartSessionRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Start a breathing session.

    Returns the session handle and the first snapshot (inhale, cycle 1).
    A user can run one session at a time.
    """
    pattern = await PatternService(session).resolve(
        user_id,
        preset=data.preset,
        pattern_id=data.pattern_id,
        inline=data.inline_durations(),
    )
    active = get_session_manager().start_session(user_id, pattern, data.resolved_target_seconds)
    return active.to_dict()


@get("/users/{user_id:str}/sessions", status_code=HTTP_200_OK)
async def list_sessions(
    user_id: str,
    session: AsyncSession,
    limit: int = Parameter(default=50, ge=1, le=200),
    offset: int = Parameter(default=0, ge=0),
) -> list[dict[str, Any]]:
    """Saved session history, newest first."""
    records = await DashboardService(session).history(user_id, limit=limit, offset=offset)
    return [record.to_dict() for record in records]


@get("/users/{user_id:str}/sessions/active", status_code=HTTP_200_OK, sync_to_thread=False)
def list_active_sessions(user_id: str) -> list[dict[str, Any]]:
    """Sessions still held in memory (running, paused, or awaiting save)."""
    return [active.to_dict() for active in get_session_manager().for_user(user_id)]


@get("/users/{user_id:str}/sessions/{handle:str}", status_code=HTTP_200_OK, sync_to_thread=False)
def get_session(user_id: str, handle: str) -> dict[str, Any]:
    """Current snapshot: state, phase, phase_remaining, elapsed, progress."""
    return get_session_manager().get(handle, user_id).to_dict()


@post("/users/{user_id:str}/sessions/{handle:str}/tick", status_code=HTTP_200_OK)
async def tick_session(
    user_id: str,
    handle: str,
    data: TickRequest,
    session: AsyncSession,
) -> dict[str, Any]:
    """Advance a client-clocked session.

    Rejected while the server drives the clock.
    """
    if settings.is_server_clock():
        raise ClientClockDisabled("The server ticks sessions; set SESSION_CLOCK=client to tick")

    manager = get_session_manager()
    active = manager.tick(handle, user_id, data.seconds)
    await manager.finalize_if_terminal(active, session)
    return active.to_dict()


@post("/users/{user_id:str}/sessions/{handle:str}/pause", status_code=HTTP_200_OK, sync_to_thread=False)
def pause_session(user_id: str, handle: str) -> dict[str, Any]:
    return get_session_manager().pause(handle, user_id).to_dict()


@post("/users/{user_id:str}/sessions/{handle:str}/resume", status_code=HTTP_200_OK, sync_to_thread=False)
def resume_session(user_id: str, handle: str) -> dict[str, Any]:
    return get_session_manager().resume(handle, user_id).to_dict()


@post("/users/{user_id:str}/sessions/{handle:str}/stop", status_code=HTTP_200_OK)
async def stop_session(
    user_id: str,
    handle: str,
    session: AsyncSession,
    data: StopSessionRequest | None = None,
) -> dict[str, Any]:
    """Stop a session and save it.

    ``credit=abandon`` (default) keeps the session in history without
    counting it; ``credit=finish`` counts the time practiced so far.
    Stopping an already finished session returns its result again.
    """
    manager = get_session_manager()
    early_exit = data.early_exit if data is not None else True
    manager.stop_session(handle, user_id, early_exit=early_exit)
    active = manager.get(handle, user_id)
    await manager.finalize(active, session)
    return active.to_dict()


@post("/users/{user_id:str}/sessions/{handle:str}/save", status_code=HTTP_200_OK)
async def save_session(user_id: str, handle: str, session: AsyncSession) -> dict[str, Any]:
    """Retry saving a finished session whose save failed."""
    manager = get_session_manager()
    active = manager.get(handle, user_id)
    if not active.engine.is_terminal:
        raise InvalidTransition("Session is still in progress; stop it first")
    await manager.finalize(active, session)
    return active.to_dict()


@delete("/users/{user_id:str}/sessions/{handle:str}", status_code=HTTP_204_NO_CONTENT, sync_to_thread=False)
def discard_session(user_id: str, handle: str) -> None:
    """Drop an in-memory session without saving it."""
    get_session_manager().discard(handle, user_id)


sessions_router = Router(
    path="/",
    route_handlers=[
        start_session,
        list_sessions,
        list_active_sessions,
        get_session,
        tick_session,
        pause_session,
        resume_session,
        stop_session,
        save_session,
        discard_session,
    ],
    guards=[user_key_guard],
    tags=["Sessions"],
)
