"""Config loader — reads YAML, applies SPREAD_* env var overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from spread_core.config.schema import AppConfig

# env var -> (section, key)
_ENV_OVERRIDES = {
    "SPREAD_DATABASE_URL": ("database", "url"),
    "SPREAD_LOG_LEVEL": ("logging", "level"),
    "SPREAD_LOG_FORMAT": ("logging", "format"),
    "SPREAD_ODDS_API_KEY": ("scores", "api_key"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None, $SPREAD_CONFIG names the file. If there is no file
    or it doesn't exist, returns defaults.

    Environment variable overrides:
        SPREAD_DATABASE_URL  -> database.url
        SPREAD_LOG_LEVEL     -> logging.level
        SPREAD_LOG_FORMAT    -> logging.format
        SPREAD_ODDS_API_KEY  -> scores.api_key
    """
    data: dict = {}
    if path is None:
        path = os.environ.get("SPREAD_CONFIG")
    if path:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    for env_var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
