"""Structured logging."""

from spread_core.logging.setup import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
