"""Spread-bet position models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

BetType = Literal["buy", "sell"]
PositionStatus = Literal["open", "partially_closed", "settled", "cancelled"]
AccountType = Literal["free", "cash"]

LIVE_STATUSES: frozenset[str] = frozenset({"open", "partially_closed"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"settled", "cancelled"})


def new_position_id() -> str:
    return f"bet-{uuid.uuid4().hex}"


class Position(BaseModel):
    """A spread wager on one event, with its collateral and realised P&L."""

    id: str = Field(default_factory=new_position_id)
    user_id: str
    match_id: str
    match_name: str | None = None
    market: str
    bet_type: BetType
    bet_price: Decimal
    stake_per_point: Decimal
    makeup_limit: Decimal | None = None
    collateral_held: Decimal = Decimal("0")
    status: PositionStatus = "open"
    stake_open: Decimal | None = None
    stake_closed: Decimal = Decimal("0")
    final_result: Decimal | None = None
    current_price: Decimal | None = None
    profit_loss: Decimal = Decimal("0")
    account_type: AccountType = "free"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    settled_at: datetime | None = None
    version: int = 0

    @field_validator("match_id", mode="before")
    @classmethod
    def _match_id_as_str(cls, v):
        # Feeds hand out numeric and string event ids interchangeably
        return str(v)

    @model_validator(mode="after")
    def _default_stake_open(self) -> Position:
        if self.stake_open is None:
            self.stake_open = self.stake_per_point
        return self

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class CloseResult(BaseModel):
    """Outcome of closing (part of) a position.

    ``collateral_released`` is the gross collateral attributable to the
    closed stake; ``amount_credited`` is what goes back to the balance,
    i.e. ``collateral_released + profit_loss``.
    """

    position: Position
    profit_loss: Decimal
    collateral_released: Decimal
    closed_stake: Decimal
    remaining_stake: Decimal

    @property
    def amount_credited(self) -> Decimal:
        return self.collateral_released + self.profit_loss

    @property
    def new_status(self) -> PositionStatus:
        return self.position.status
