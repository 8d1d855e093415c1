"""Test fixtures for breath-flow-server."""

from tests.fixtures.session_seed import make_record, seed_daily_sessions

__all__ = [
    "make_record",
    "seed_daily_sessions",
]
