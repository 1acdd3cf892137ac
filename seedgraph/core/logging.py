"""Structured logging for seeding runs.

Every event emitted while a run is in progress carries that run's ``run_id``,
bound with ``structlog.contextvars`` by ``Seeder.seed``. A ``SeedError`` passed
as ``error=`` is flattened into its code, message and details.
"""

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from seedgraph.core.config import Settings, get_settings
from seedgraph.core.exceptions import SeedError

RUN_ID_KEY = "run_id"


def current_run_id() -> str | None:
    """Return the id of the seeding run bound to the current context."""
    run_id: str | None = structlog.contextvars.get_contextvars().get(RUN_ID_KEY)
    return run_id


def render_seed_error(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace an ``error=SeedError(...)`` field by its structured parts."""
    error = event_dict.get("error")
    if isinstance(error, SeedError):
        event_dict["error"] = error.message
        event_dict["error_code"] = error.code
        event_dict["error_type"] = type(error).__name__
        if error.details:
            event_dict["details"] = error.details
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog from settings (JSON or console output)."""
    settings = settings or get_settings()

    renderer: structlog.types.Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            render_seed_error,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a logger; ``name`` is usually the calling module's ``__name__``."""
    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger
