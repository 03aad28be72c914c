"""Pydantic domain models."""

from spread_core.models.account import UserAccount
from spread_core.models.grading import EventResult, GradingLog, GradingResult
from spread_core.models.position import (
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    CloseResult,
    Position,
)

__all__ = [
    "CloseResult",
    "EventResult",
    "GradingLog",
    "GradingResult",
    "LIVE_STATUSES",
    "Position",
    "TERMINAL_STATUSES",
    "UserAccount",
]
