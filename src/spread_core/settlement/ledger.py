"""Collateral ledger — debit on open, credit on close, free→cash upgrades.

Crediting convention: on every close the account receives
``collateral_released + profit_loss`` where ``collateral_released`` is the
gross collateral attributable to the closed stake and ``profit_loss`` is the
already-capped P&L. A loss is therefore subtracted exactly once, and a gain
is paid on top of the returned collateral.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from spread_core.config.schema import SettlementConfig
from spread_core.models.account import UserAccount
from spread_core.models.position import AccountType
from spread_core.settlement.calculator import to_decimal
from spread_core.settlement.errors import InsufficientBalance, ValidationError


def required_collateral(stake_per_point, makeup_limit) -> Decimal:
    """Collateral reserved for a stake: stake_per_point * makeup_limit."""
    stake = to_decimal(stake_per_point, "stake_per_point")
    makeup = to_decimal(makeup_limit, "makeup_limit")
    if stake <= 0:
        raise ValidationError(f"stake_per_point must be positive, got {stake_per_point!r}")
    if makeup < 0:
        raise ValidationError(f"makeup_limit must not be negative, got {makeup_limit!r}")
    return stake * makeup


def open_position(
    account: UserAccount,
    stake_per_point,
    makeup_limit,
) -> tuple[UserAccount, Decimal]:
    """Reserve collateral for a new position.

    Returns the debited account (``bets_placed`` incremented) and the
    collateral amount. Raises InsufficientBalance if the active balance
    cannot cover it.
    """
    collateral = required_collateral(stake_per_point, makeup_limit)
    if account.balance < collateral:
        raise InsufficientBalance(collateral, account.balance)
    debited = account.with_balance_delta(-collateral)
    debited.bets_placed = account.bets_placed + 1
    return debited, collateral


def release_on_settle(
    account: UserAccount,
    collateral_released: Decimal,
    profit_loss: Decimal,
    account_type: AccountType | None = None,
) -> UserAccount:
    """Credit released collateral plus capped P&L.

    The credit goes to the balance the collateral was taken from
    (*account_type*, the position's), which differs from the active balance
    once a free account upgrades with positions still open.
    """
    return account.with_balance_delta(collateral_released + profit_loss, account_type)


def should_prompt_upgrade(account: UserAccount, config: SettlementConfig) -> bool:
    """Free accounts are nudged to cash after a few bets or a good run."""
    if account.account_type == "cash":
        return False
    if account.bets_placed >= config.upgrade_prompt_bets:
        return True
    return account.virtual_balance > Decimal(str(config.upgrade_prompt_balance))


def upgrade_to_cash(
    account: UserAccount,
    wallet_address: str,
    config: SettlementConfig,
    now: datetime | None = None,
) -> UserAccount:
    """Switch a free account to real money with the sign-up bonus."""
    if account.account_type == "cash":
        raise ValidationError("Account is already in cash mode")
    if not wallet_address:
        raise ValidationError("wallet_address is required")
    return account.model_copy(update={
        "account_type": "cash",
        "wallet_address": wallet_address,
        "wallet_connected_at": now or datetime.now(timezone.utc),
        "wallet_balance": Decimal(str(config.upgrade_bonus)),
    })
