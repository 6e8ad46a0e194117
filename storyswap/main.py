"""StorySwap FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and optionally runs the expired-swap reaper in the
background.

``build_services`` exposes the same wiring without the web server, for the
maintenance CLI in ``storyswap/cli``.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from storyswap.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from storyswap.api.routes import router as api_router
from storyswap.config.loader import load_config
from storyswap.config.settings import Settings
from storyswap.providers.place.sqlite_place_provider import SQLitePlaceProvider
from storyswap.providers.story.sqlite_story_provider import SQLiteStoryProvider
from storyswap.providers.swap.sqlite_swap_provider import SQLiteSwapProvider
from storyswap.providers.user.sqlite_user_provider import SQLiteUserProvider
from storyswap.services.moderation import ModerationPipeline
from storyswap.services.scoring_service import ScoringService
from storyswap.services.story_materializer import StoryMaterializer
from storyswap.services.story_service import StoryService
from storyswap.services.swap_service import SwapService
from storyswap.services.unlock_service import UnlockService
from storyswap.utils.logging import configure_logging, get_logger
from storyswap.utils.popularity import TRENDING_THRESHOLD

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(log_level=settings.log_level, app_env=settings.app_env)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_services(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance.

    All providers share ``app_settings.db_path``.  Returns a flat dict of
    named components; providers still need ``initialize()`` before use.
    """
    # -- Storage providers --
    story_store = SQLiteStoryProvider(db_path=app_settings.db_path)
    place_store = SQLitePlaceProvider(db_path=app_settings.db_path)
    swap_store = SQLiteSwapProvider(db_path=app_settings.db_path)
    user_store = SQLiteUserProvider(db_path=app_settings.db_path)

    # -- Services --
    scoring_section = app_config.get("scoring", {}) or {}
    scoring = ScoringService(
        story_store,
        place_store,
        trending_threshold=float(scoring_section.get("trending_threshold", TRENDING_THRESHOLD)),
    )
    materializer = StoryMaterializer.from_config(
        app_config, story_store, place_store, user_store, scoring
    )
    pipeline = ModerationPipeline.from_config(app_config, story_store)
    unlock = UnlockService(swap_store)

    swap_service = SwapService(
        story_store,
        swap_store,
        pipeline,
        materializer,
        swap_ttl=timedelta(hours=app_settings.swap_ttl_hours),
    )
    story_service = StoryService(story_store, place_store, unlock, materializer, scoring)

    # -- Provider registry for /health --
    providers = [story_store, place_store, swap_store, user_store]
    provider_registry: dict[str, Any] = {
        "storage": [p.get_provider_name() for p in providers],
        "moderation": pipeline.check_names,
    }

    return {
        "story_store": story_store,
        "place_store": place_store,
        "swap_store": swap_store,
        "user_store": user_store,
        "swap_service": swap_service,
        "story_service": story_service,
        "provider_registry": provider_registry,
    }


async def initialize_providers(components: dict[str, Any]) -> None:
    """Create tables and indices for every storage provider."""
    for key in ("story_store", "place_store", "swap_store", "user_store"):
        await components[key].initialize()


# ---------------------------------------------------------------------------
# Background reaper
# ---------------------------------------------------------------------------


async def _reap_forever(swap_service: SwapService, interval_seconds: int) -> None:
    """Expire overdue swaps every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await swap_service.reap()
        except Exception as exc:
            # One failed sweep must not stop later ones.
            _logger.error("reaper_sweep_failed", error=str(exc))


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise providers and services on startup, stop the reaper on shutdown."""
    app_settings: Settings = application.state.settings
    components = build_services(app_settings, application.state.config)
    await initialize_providers(components)

    for key, value in components.items():
        setattr(application.state, key, value)

    reaper: asyncio.Task | None = None
    if app_settings.reap_interval_seconds > 0:
        reaper = asyncio.create_task(
            _reap_forever(components["swap_service"], app_settings.reap_interval_seconds)
        )

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=app_settings.app_env,
        db_path=app_settings.db_path,
        reap_interval_seconds=app_settings.reap_interval_seconds,
    )

    yield

    if reaper is not None:
        reaper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reaper
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    app_config: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Tests pass their own ``Settings`` (e.g. a temporary ``db_path``).
    """
    app_settings = app_settings or settings
    if app_config is None:
        app_config = load_config(settings=app_settings)

    application = FastAPI(
        title="StorySwap API",
        version=_VERSION,
        description=(
            "Publish location-tagged stories and unlock other people's "
            "stories by swapping one of your own."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings
    application.state.config = app_config

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=app_settings.get_cors_origins())

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "storyswap.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "development",
    )
