"""Tests for the collateral ledger and free→cash upgrades."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from spread_core.config.schema import SettlementConfig
from spread_core.models import UserAccount
from spread_core.settlement.errors import InsufficientBalance, ValidationError
from spread_core.settlement.ledger import (
    open_position,
    release_on_settle,
    required_collateral,
    should_prompt_upgrade,
    upgrade_to_cash,
)


def _account(**overrides) -> UserAccount:
    fields = dict(user_id="u1", virtual_balance=Decimal("1000"), version=1)
    fields.update(overrides)
    return UserAccount(**fields)


class TestRequiredCollateral:
    def test_stake_times_makeup(self):
        assert required_collateral(Decimal("10"), Decimal("20")) == Decimal("200")

    def test_zero_makeup_needs_nothing(self):
        assert required_collateral(Decimal("10"), 0) == 0

    @pytest.mark.parametrize("stake", [0, -1])
    def test_non_positive_stake_rejected(self, stake):
        with pytest.raises(ValidationError):
            required_collateral(stake, 20)

    def test_negative_makeup_rejected(self):
        with pytest.raises(ValidationError):
            required_collateral(10, -5)


class TestOpenPosition:
    def test_debits_virtual_balance(self):
        debited, collateral = open_position(_account(), Decimal("10"), Decimal("20"))
        assert collateral == Decimal("200")
        assert debited.virtual_balance == Decimal("800")
        assert debited.bets_placed == 1
        assert debited.version == 1

    def test_input_account_untouched(self):
        acct = _account()
        open_position(acct, Decimal("10"), Decimal("20"))
        assert acct.virtual_balance == Decimal("1000")
        assert acct.bets_placed == 0

    def test_debits_wallet_for_cash_accounts(self):
        acct = _account(account_type="cash", wallet_balance=Decimal("50"))
        debited, _ = open_position(acct, Decimal("1"), Decimal("20"))
        assert debited.wallet_balance == Decimal("30")
        assert debited.virtual_balance == Decimal("1000")

    def test_exact_balance_allowed(self):
        debited, _ = open_position(_account(virtual_balance=Decimal("200")), 10, 20)
        assert debited.virtual_balance == 0

    def test_insufficient_balance(self):
        with pytest.raises(InsufficientBalance) as exc:
            open_position(_account(virtual_balance=Decimal("150")), 10, 20)
        assert exc.value.required == Decimal("200")
        assert exc.value.available == Decimal("150")
        assert "Required: 200" in str(exc.value)


class TestReleaseOnSettle:
    def test_gain_paid_on_top_of_collateral(self):
        acct = release_on_settle(_account(virtual_balance=Decimal("800")), Decimal("200"), Decimal("5"))
        assert acct.virtual_balance == Decimal("1005")

    def test_loss_subtracted_once(self):
        acct = release_on_settle(_account(virtual_balance=Decimal("800")), Decimal("100"), Decimal("-4"))
        assert acct.virtual_balance == Decimal("896")

    def test_capped_loss_returns_nothing(self):
        acct = release_on_settle(_account(virtual_balance=Decimal("800")), Decimal("200"), Decimal("-200"))
        assert acct.virtual_balance == Decimal("800")

    def test_credits_the_source_balance(self):
        upgraded = _account(account_type="cash", virtual_balance=Decimal("800"), wallet_balance=Decimal("50"))
        acct = release_on_settle(upgraded, Decimal("200"), Decimal("5"), account_type="free")
        assert acct.virtual_balance == Decimal("1005")
        assert acct.wallet_balance == Decimal("50")

    def test_defaults_to_active_balance(self):
        cash = _account(account_type="cash", wallet_balance=Decimal("30"))
        assert release_on_settle(cash, Decimal("20"), Decimal("0")).wallet_balance == Decimal("50")


class TestUpgrade:
    def test_prompt_after_enough_bets(self):
        cfg = SettlementConfig()
        assert not should_prompt_upgrade(_account(bets_placed=2), cfg)
        assert should_prompt_upgrade(_account(bets_placed=3), cfg)

    def test_prompt_on_high_balance(self):
        assert should_prompt_upgrade(_account(virtual_balance=Decimal("1600")), SettlementConfig())

    def test_cash_account_never_prompted(self):
        acct = _account(account_type="cash", bets_placed=10)
        assert not should_prompt_upgrade(acct, SettlementConfig())

    def test_upgrade_sets_wallet_and_bonus(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        acct = upgrade_to_cash(_account(), "0xabc", SettlementConfig(upgrade_bonus=50), now=now)
        assert acct.account_type == "cash"
        assert acct.wallet_address == "0xabc"
        assert acct.wallet_connected_at == now
        assert acct.balance == Decimal("50")
        assert acct.virtual_balance == Decimal("1000")

    def test_already_cash_rejected(self):
        with pytest.raises(ValidationError):
            upgrade_to_cash(_account(account_type="cash"), "0xabc", SettlementConfig())

    def test_wallet_address_required(self):
        with pytest.raises(ValidationError):
            upgrade_to_cash(_account(), "", SettlementConfig())
