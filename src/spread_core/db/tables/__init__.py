"""Import all table modules so Base.metadata knows about them."""

from spread_core.db.tables.accounts import UserAccountRow
from spread_core.db.tables.grading import GradingLogRow
from spread_core.db.tables.positions import PositionRow

__all__ = [
    "GradingLogRow",
    "PositionRow",
    "UserAccountRow",
]
