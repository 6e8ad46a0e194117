"""Structured logging for the StorySwap service and CLI.

# ─── ARCHITECTURE ROLE ────────────────────────────────────────────────
#
# One shared structlog processor chain feeds either a coloured console
# renderer (development) or a JSON renderer (``APP_ENV=production``).
# Standard-library ``logging`` goes through the same formatter, so uvicorn
# and aiosqlite lines look like ours.  aiosqlite's per-statement debug
# lines and uvicorn's access log are held at WARNING; every request is
# already logged once as ``http_request`` by the API middleware.
#
# Context binding:
#   request_context(request_id)  bound by RequestLoggingMiddleware
#   swap_context(swap)           bound by SwapService while a swap is
#                                validated, moderated and materialized
# Both ride on structlog contextvars, so every event emitted inside the
# block (including provider and materializer events) carries the ids.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from storyswap.models.swap import Swap

# Third-party loggers and the level they are held at.
_QUIET_LOGGERS: dict[str, int] = {
    "aiosqlite": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def configure_logging(
    log_level: str = "INFO",
    app_env: str = "development",
    json_output: bool | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level name from ``LOG_LEVEL`` (DEBUG, INFO, WARNING, ERROR).
        app_env: ``APP_ENV`` from settings.  ``production`` selects JSON.
        json_output: Force JSON (True) or console (False) rendering
            regardless of ``app_env``.
    """
    use_json = app_env == "production" if json_output is None else json_output
    level = logging.getLevelName(log_level.upper())

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, quiet_level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Named logger; applies the development defaults if nothing is configured yet."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextmanager
def request_context(request_id: str, **extra: object) -> Iterator[None]:
    """Bind ``request_id`` (and any extra keys) for the duration of a request."""
    with structlog.contextvars.bound_contextvars(request_id=request_id, **extra):
        yield


@contextmanager
def swap_context(swap: Swap) -> Iterator[None]:
    """Bind the swap's ids so every event while it is processed carries them."""
    with structlog.contextvars.bound_contextvars(
        swap_id=swap.swap_id,
        user_id=swap.user_id,
        story_id=swap.story_to_unlock_id,
    ):
        yield
