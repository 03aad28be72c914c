"""User account (wallet) model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from spread_core.models.position import AccountType


class UserAccount(BaseModel):
    """A user's balances. Free accounts play with virtual funds, cash accounts with the wallet."""

    user_id: str
    account_type: AccountType = "free"
    virtual_balance: Decimal = Decimal("1000")
    wallet_balance: Decimal = Decimal("0")
    bets_placed: int = 0
    wallet_address: str | None = None
    wallet_connected_at: datetime | None = None
    version: int = 0

    @property
    def balance(self) -> Decimal:
        if self.account_type == "free":
            return self.virtual_balance
        return self.wallet_balance

    def with_balance_delta(self, delta: Decimal, account_type: AccountType | None = None) -> UserAccount:
        """Return a copy with *delta* applied to the active balance, or to the
        balance named by *account_type* (virtual for "free", wallet for "cash")."""
        if (account_type or self.account_type) == "free":
            return self.model_copy(update={"virtual_balance": self.virtual_balance + delta})
        return self.model_copy(update={"wallet_balance": self.wallet_balance + delta})
