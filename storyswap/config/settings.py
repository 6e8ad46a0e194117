"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from TWO sources (in priority order):
#
#   1. **Environment variables** (e.g. SWAP_TTL_HOURS=48), always win.
#   2. **.env file** in the project root, used for local development.
#
# Field ``swap_ttl_hours`` maps to env var ``SWAP_TTL_HOURS``.  Defaults
# apply when neither source sets a value.
#
# Moderation rules and scoring thresholds are not settings; they live in
# config/config.yaml and are merged in by ``load_config()``.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """StorySwap application settings.

    Environment variables override defaults.  Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Persistence ===
    # Stories, swaps, locations, tags and user counters share one SQLite file
    # so the swap UNIQUE index and counter updates see a single source of truth.
    db_path: str = "data/storyswap.db"

    # === Rules file ===
    config_path: str = "config/config.yaml"

    # === Swap lifecycle ===
    swap_ttl_hours: int = 24
    # Seconds between background reaper sweeps; 0 disables the in-app reaper
    # (run ``python -m storyswap.cli reap`` from cron instead).
    reap_interval_seconds: int = 0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "*"

    def get_cors_origins(self) -> list[str]:
        """Split the comma-separated ``cors_origins`` value."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
