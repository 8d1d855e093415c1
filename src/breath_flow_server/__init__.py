"""Breathing session engine and practice statistics server."""

__version__ = "0.3.0"
