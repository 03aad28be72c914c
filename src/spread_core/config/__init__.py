"""Configuration system."""

from spread_core.config.loader import load_config
from spread_core.config.schema import AppConfig

__all__ = ["AppConfig", "load_config"]
