"""Core infrastructure: config, database, logging, exceptions."""

from seedgraph.core.config import Settings, get_settings
from seedgraph.core.database import Base, session_scope
from seedgraph.core.logging import configure_logging, current_run_id, get_logger

__all__ = [
    "Base",
    "Settings",
    "configure_logging",
    "current_run_id",
    "get_logger",
    "get_settings",
    "session_scope",
]
