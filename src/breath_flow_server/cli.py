"""CLI entry point for breath-flow-server."""

import asyncio

import typer
import uvicorn

from breath_flow_server import __version__
from breath_flow_server.core.config import settings

app = typer.Typer(
    name="breath-flow-server",
    help="Guided breathing session server",
    no_args_is_help=True,
)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (overrides config)"),
    port: int = typer.Option(None, help="Port to bind to (overrides config)"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server.

    Example:
        breath-flow-server serve
        breath-flow-server serve --host 0.0.0.0 --port 8080 --reload
    """
    uvicorn.run(
        "breath_flow_server.app:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"breath-flow-server v{__version__}")


@app.command("reconcile-stats")
def reconcile_stats(
    limit: int = typer.Option(100, help="Maximum records to process"),
) -> None:
    """Apply stats for saved sessions whose stats update never landed."""
    from breath_flow_server.core.database import async_session_maker, close_database
    from breath_flow_server.services.stats import StatsAggregator

    async def run() -> int:
        try:
            async with async_session_maker() as session:
                return await StatsAggregator(session).reconcile_pending(limit=limit)
        finally:
            await close_database()

    applied = asyncio.run(run())
    typer.echo(f"Applied stats for {applied} session(s)")


@app.command("decay-streaks")
def decay_streaks() -> None:
    """Reset streaks whose last session is older than yesterday."""
    from breath_flow_server.core.database import async_session_maker, close_database
    from breath_flow_server.services.stats import StatsAggregator

    async def run() -> int:
        try:
            async with async_session_maker() as session:
                return await StatsAggregator(session).decay_streaks()
        finally:
            await close_database()

    reset = asyncio.run(run())
    typer.echo(f"Reset {reset} streak(s)")


@app.command("moderate-feedback")
def moderate_feedback(
    feedback_id: str = typer.Argument(..., help="Feedback id"),
    approve: bool = typer.Option(True, "--approve/--reject", help="Approve or reject"),
    public: bool = typer.Option(True, "--public/--private", help="Show on the public list"),
) -> None:
    """Approve or hide a feedback entry."""
    from breath_flow_server.core.database import async_session_maker, close_database
    from breath_flow_server.services.feedback import FeedbackService

    async def run() -> None:
        try:
            async with async_session_maker() as session:
                await FeedbackService(session).moderate(feedback_id, approved=approve, public=public)
        finally:
            await close_database()

    asyncio.run(run())
    typer.echo(f"Feedback {feedback_id}: approved={approve} public={public}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
