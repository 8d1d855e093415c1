"""Core configuration, database and authentication."""
