"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- moderation rules, materializer limits,
#                             scoring thresholds checked into the repo
#   2. .env file           -- local developer overrides (not committed)
#   3. Environment vars    -- set at deploy time
#
# ``load_config()`` reads the YAML file first, then deep-merges the
# environment-based values from ``Settings`` on top.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from storyswap.config.settings import Settings
from storyswap.utils.errors import ConfigurationError


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML file.  Defaults to ``settings.config_path``.
        settings: Settings instance to merge.  A fresh one is built if omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML file exists but is not a mapping.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    if not isinstance(yaml_config, dict):
        raise ConfigurationError(f"{config_path} must contain a YAML mapping")

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "storage": {
            "db_path": settings.db_path,
        },
        "swaps": {
            "ttl_hours": settings.swap_ttl_hours,
            "reap_interval_seconds": settings.reap_interval_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
