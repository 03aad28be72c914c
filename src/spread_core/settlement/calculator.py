"""Settlement calculator — spread-bet P&L, loss capping, full/partial close. Pure functions, no I/O."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from spread_core.models.position import CloseResult, Position
from spread_core.settlement.errors import PositionStateError, ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_EPSILON = Decimal("1e-9")


def to_decimal(value, name: str = "value") -> Decimal:
    """Coerce *value* to a finite Decimal, raising ValidationError otherwise."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}") from None
    if not d.is_finite():
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return d


def compute_profit_loss(
    bet_type: str,
    bet_price,
    stake_per_point,
    final_result,
) -> Decimal:
    """Signed P&L of a spread bet.

    buy:  (final_result - bet_price) * stake_per_point
    sell: (bet_price - final_result) * stake_per_point
    """
    price = to_decimal(bet_price, "bet_price")
    stake = to_decimal(stake_per_point, "stake_per_point")
    result = to_decimal(final_result, "final_result")
    if bet_type == "buy":
        return (result - price) * stake
    if bet_type == "sell":
        return (price - result) * stake
    raise ValidationError(f"bet_type must be 'buy' or 'sell', got {bet_type!r}")


def cap_loss(profit_loss, collateral_held) -> Decimal:
    """Clamp a loss at the collateral backing it; gains pass through.

    With zero collateral a loss is clamped to 0.
    """
    pl = to_decimal(profit_loss, "profit_loss")
    collateral = to_decimal(collateral_held, "collateral_held")
    if pl >= 0:
        return pl
    return max(pl, -collateral)


def _require_live(position: Position, action: str) -> None:
    if not position.is_live:
        raise PositionStateError(position.id, position.status, action)


def settle_full(
    position: Position,
    final_result,
    now: datetime | None = None,
) -> CloseResult:
    """Settle the whole open stake at *final_result*.

    The loss is capped at ``collateral_held`` and all held collateral is
    released. The caller credits ``result.amount_credited`` exactly once.
    """
    _require_live(position, "settle")
    result = to_decimal(final_result, "final_result")
    stake = position.stake_open

    raw_pl = compute_profit_loss(position.bet_type, position.bet_price, stake, result)
    pl = cap_loss(raw_pl, position.collateral_held)
    released = position.collateral_held

    updated = position.model_copy(update={
        "status": "settled",
        "final_result": result,
        "profit_loss": position.profit_loss + pl,
        "collateral_held": ZERO,
        "stake_open": ZERO,
        "stake_closed": position.stake_closed + stake,
        "settled_at": now or datetime.now(timezone.utc),
    })
    return CloseResult(
        position=updated,
        profit_loss=pl,
        collateral_released=released,
        closed_stake=stake,
        remaining_stake=ZERO,
    )


def settle_partial(
    position: Position,
    percent_to_close,
    current_price,
    epsilon: Decimal = DEFAULT_EPSILON,
    now: datetime | None = None,
) -> CloseResult:
    """Close *percent_to_close* % of the open stake at *current_price*.

    stake_to_close     = stake_open * pct / 100
    loss cap           = stake_to_close * makeup_limit   (when makeup_limit set)
    collateral release = stake_to_close * makeup_limit
    collateral held    = stake_remaining * makeup_limit
    """
    pct = to_decimal(percent_to_close, "percent_to_close")
    if pct <= 0 or pct > HUNDRED:
        raise ValidationError(f"percent_to_close must be in (0, 100], got {percent_to_close!r}")
    _require_live(position, "close")
    price = to_decimal(current_price, "current_price")

    stake_open = position.stake_open
    stake_to_close = stake_open * (pct / HUNDRED)
    stake_remaining = stake_open - stake_to_close
    # Snap dust first so P&L, released collateral and stake_closed share one stake
    finished = stake_remaining <= epsilon
    if finished:
        stake_to_close = stake_open
        stake_remaining = ZERO

    pl = compute_profit_loss(position.bet_type, position.bet_price, stake_to_close, price)
    makeup = position.makeup_limit or ZERO
    if makeup > 0 and pl < 0:
        pl = max(pl, -(stake_to_close * makeup))

    update: dict = {
        "profit_loss": position.profit_loss + pl,
        "current_price": price,
    }
    if finished:
        update["status"] = "settled"
        update["settled_at"] = now or datetime.now(timezone.utc)
    else:
        update["status"] = "partially_closed"

    released = stake_to_close * makeup
    update["stake_open"] = stake_remaining
    update["stake_closed"] = position.stake_closed + stake_to_close
    update["collateral_held"] = stake_remaining * makeup

    return CloseResult(
        position=position.model_copy(update=update),
        profit_loss=pl,
        collateral_released=released,
        closed_stake=stake_to_close,
        remaining_stake=stake_remaining,
    )


def cancel(position: Position) -> CloseResult:
    """Void an untouched open position, releasing all of its collateral."""
    if position.status != "open":
        raise PositionStateError(position.id, position.status, "cancel")
    released = position.collateral_held
    updated = position.model_copy(update={"status": "cancelled", "collateral_held": ZERO})
    return CloseResult(
        position=updated,
        profit_loss=ZERO,
        collateral_released=released,
        closed_stake=ZERO,
        remaining_stake=position.stake_open,
    )


def total_locked_collateral(positions: Iterable[Position]) -> Decimal:
    """Collateral still reserved across live positions."""
    return sum((p.collateral_held for p in positions if p.is_live), ZERO)


def total_profit_loss(positions: Iterable[Position]) -> Decimal:
    """Realised P&L across positions, including partial closes of live ones."""
    return sum((p.profit_loss for p in positions), ZERO)
