"""Spread-bet settlement — calculator, collateral ledger, service."""

from spread_core.settlement.calculator import (
    cancel,
    cap_loss,
    compute_profit_loss,
    settle_full,
    settle_partial,
    total_locked_collateral,
    total_profit_loss,
)
from spread_core.settlement.errors import (
    InsufficientBalance,
    PositionNotFound,
    PositionStateError,
    SettlementError,
    StaleStateError,
    ValidationError,
)
from spread_core.settlement.ledger import (
    open_position,
    release_on_settle,
    required_collateral,
    should_prompt_upgrade,
    upgrade_to_cash,
)
from spread_core.settlement.service import SettlementService

__all__ = [
    "InsufficientBalance",
    "PositionNotFound",
    "PositionStateError",
    "SettlementError",
    "SettlementService",
    "StaleStateError",
    "ValidationError",
    "cancel",
    "cap_loss",
    "compute_profit_loss",
    "open_position",
    "release_on_settle",
    "required_collateral",
    "settle_full",
    "settle_partial",
    "should_prompt_upgrade",
    "total_locked_collateral",
    "total_profit_loss",
    "upgrade_to_cash",
]
