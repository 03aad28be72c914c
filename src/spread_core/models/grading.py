"""Grading models — completed events from the scores feed and grading outcomes."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class EventResult(BaseModel):
    """A finished event as reported by the scores feed."""

    event_id: str
    sport: str
    home_team: str
    away_team: str
    home_score: int
    away_score: int
    completed: bool = True

    @property
    def final_result(self) -> Decimal:
        """Point spread, home minus away."""
        return Decimal(self.home_score - self.away_score)


class GradingResult(BaseModel):
    """Per-position outcome of grading an event."""

    position_id: str
    user_id: str
    profit_loss: Decimal = Decimal("0")
    collateral_released: Decimal = Decimal("0")
    success: bool
    message: str = ""

    @property
    def amount_credited(self) -> Decimal:
        return self.collateral_released + self.profit_loss


class GradingLog(BaseModel):
    """Audit record of one grading run for one event."""

    event_id: str
    sport: str | None = None
    final_result: Decimal
    positions_graded: int = 0
    total_credited: Decimal = Decimal("0")
    method: Literal["auto", "manual"] = "manual"
    status: Literal["success", "failed"] = "success"
    error_message: str | None = None
    ts: datetime
