"""SettlementService — opens, closes and grades positions against a PositionStore."""

from __future__ import annotations

import threading
import time
import weakref
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.exc import OperationalError

from spread_core.config.schema import AppConfig
from spread_core.models import (
    LIVE_STATUSES,
    CloseResult,
    GradingLog,
    GradingResult,
    Position,
    UserAccount,
)
from spread_core.settlement import calculator, ledger
from spread_core.settlement.errors import (
    PositionNotFound,
    PositionStateError,
    SettlementError,
    StaleStateError,
    ValidationError,
)
from spread_core.settlement.retry import call_with_retry
from spread_core.store.base import PositionStore

log = structlog.get_logger("settlement")

# Errors from the storage medium worth another attempt
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OperationalError, ConnectionError, TimeoutError)

# Optimistic-concurrency conflicts tolerated before giving up
MAX_CONFLICTS = 3

ALREADY_TERMINAL = "Position already settled or cancelled"


class _KeyedLocks:
    """One lock per key, created on demand.

    Entries are weak: a key's lock lives only while some caller holds it,
    so finished positions do not accumulate for the life of the process.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def __call__(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


def _same_state(stored: Position, intended: Position) -> bool:
    """True if *stored* is exactly the write we attempted (an ambiguous commit that landed)."""
    return (
        stored.version == intended.version + 1
        and stored.status == intended.status
        and stored.stake_open == intended.stake_open
        and stored.stake_closed == intended.stake_closed
        and stored.profit_loss == intended.profit_loss
        and stored.collateral_held == intended.collateral_held
    )


class SettlementService:
    """Applies calculator results and ledger movements through the store.

    Every mutation of a position runs under that position's lock, reloads
    the persisted state, and commits position and account together with a
    version check, so a position is settled at most once.
    """

    def __init__(
        self,
        store: PositionStore,
        config: AppConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.config = config or AppConfig()
        self._settings = self.config.settlement
        self._epsilon = Decimal(str(self._settings.stake_epsilon))
        self._sleep = sleep
        self._position_locks = _KeyedLocks()
        self._account_locks = _KeyedLocks()

    # ── Store helpers ─────────────────────────────────────────

    def _commit(self, position: Position, account: UserAccount) -> tuple[Position, UserAccount]:
        return call_with_retry(
            lambda: self.store.commit(position, account),
            self.config.retry,
            retry_on=TRANSIENT_ERRORS,
            op="store_commit",
            sleep=self._sleep,
        )

    def _load(self, position_id: str) -> Position:
        position = self.store.get_position(position_id)
        if position is None:
            raise PositionNotFound(f"No position with id {position_id!r}")
        return position

    def _apply(
        self,
        position_id: str,
        compute: Callable[[Position], CloseResult],
        action: str,
        skip_terminal: bool = False,
    ) -> CloseResult | None:
        """Compute on fresh state, credit the owner, commit; tolerate lost races.

        Returns None when another writer settled or cancelled the position
        first (found on load with *skip_terminal*, or on a rejected commit).
        Without *skip_terminal* a position already terminal on load is
        rejected by the calculator with PositionStateError.
        """
        with self._position_locks(position_id):
            for _ in range(MAX_CONFLICTS):
                position = self._load(position_id)
                if skip_terminal and position.is_terminal:
                    log.warning("position_already_terminal", position_id=position_id,
                                status=position.status, action=action)
                    return None

                result = compute(position)
                account = self.store.ensure_account(position.user_id)
                credited = ledger.release_on_settle(
                    account, result.collateral_released, result.profit_loss,
                    account_type=position.account_type,
                )
                try:
                    stored, stored_account = self._commit(result.position, credited)
                except StaleStateError:
                    fresh = self._load(position_id)
                    if _same_state(fresh, result.position):
                        log.info("commit_already_applied", position_id=position_id, action=action)
                        return result.model_copy(update={"position": fresh})
                    if fresh.is_terminal:
                        log.warning("settlement_skipped_stale", position_id=position_id,
                                    status=fresh.status, action=action)
                        return None
                    log.info("commit_conflict_retry", position_id=position_id, action=action)
                    continue

                log.info(
                    "position_" + action,
                    position_id=position_id,
                    user_id=stored.user_id,
                    status=stored.status,
                    profit_loss=result.profit_loss,
                    collateral_released=result.collateral_released,
                    amount_credited=result.amount_credited,
                    balance=stored_account.balance,
                )
                return result.model_copy(update={"position": stored})

        raise StaleStateError("position", position_id, position.version)

    # ── Opening ───────────────────────────────────────────────

    def place_bet(
        self,
        user_id: str,
        match_id: str | int,
        bet_type: str,
        price,
        stake_per_point,
        makeup_limit=None,
        market: str | None = None,
        match_name: str | None = None,
    ) -> Position:
        """Open a position, debiting its collateral from the user's active balance."""
        if bet_type not in ("buy", "sell"):
            raise ValidationError(f"bet_type must be 'buy' or 'sell', got {bet_type!r}")
        if makeup_limit is None:
            makeup_limit = self._settings.default_makeup_limit
        bet_price = calculator.to_decimal(price, "price")
        stake = calculator.to_decimal(stake_per_point, "stake_per_point")
        makeup = calculator.to_decimal(makeup_limit, "makeup_limit")
        label = match_name or str(match_id)

        with self._account_locks(user_id):
            for _ in range(MAX_CONFLICTS):
                account = self.store.ensure_account(user_id)
                debited, collateral = ledger.open_position(account, stake, makeup)
                position = Position(
                    user_id=user_id,
                    match_id=match_id,
                    match_name=match_name,
                    market=market or f"{label} Spread",
                    bet_type=bet_type,
                    bet_price=bet_price,
                    stake_per_point=stake,
                    makeup_limit=makeup,
                    collateral_held=collateral,
                    account_type=account.account_type,
                )
                try:
                    stored, stored_account = self._commit(position, debited)
                except StaleStateError:
                    log.info("open_conflict_retry", user_id=user_id)
                    continue
                log.info(
                    "position_opened",
                    position_id=stored.id,
                    user_id=user_id,
                    match_id=stored.match_id,
                    bet_type=bet_type,
                    bet_price=bet_price,
                    stake_per_point=stake,
                    collateral=collateral,
                    balance=stored_account.balance,
                )
                return stored
        raise StaleStateError("account", user_id, account.version)

    # ── Closing ───────────────────────────────────────────────

    def close_position(self, position_id: str, percent, current_price) -> CloseResult | None:
        """Close *percent* % of a live position at *current_price*."""
        return self._apply(
            position_id,
            lambda p: calculator.settle_partial(p, percent, current_price, epsilon=self._epsilon),
            action="closed",
        )

    def close_by_match(
        self,
        user_id: str,
        match_ref: str,
        percent,
        current_price,
    ) -> CloseResult | None:
        """Close the user's position on a match given by id or (partial) name."""
        position = self.store.find_position(user_id, match_ref, statuses=LIVE_STATUSES)
        if position is None:
            existing = self.store.find_position(user_id, match_ref)
            if existing is not None:
                raise PositionStateError(existing.id, existing.status, "close")
            raise PositionNotFound(f'No position found matching "{match_ref}"')
        return self.close_position(position.id, percent, current_price)

    def settle_position(self, position_id: str, final_result) -> CloseResult | None:
        """Settle the whole open stake at the event's final result."""
        return self._apply(
            position_id,
            lambda p: calculator.settle_full(p, final_result),
            action="settled",
        )

    def cancel_position(self, position_id: str) -> CloseResult | None:
        """Void an untouched open position and refund its collateral."""
        return self._apply(position_id, calculator.cancel, action="cancelled")

    # ── Grading ───────────────────────────────────────────────

    def grade_event(
        self,
        event_id: str | int,
        final_result,
        sport: str | None = None,
        method: str = "manual",
        now: datetime | None = None,
    ) -> list[GradingResult]:
        """Settle every live position on an event at *final_result*.

        Events with a successful grading log are skipped. Positions that
        turn out to be terminal when locked are reported but not touched.
        """
        event_id = str(event_id)
        result_value = calculator.to_decimal(final_result, "final_result")
        if self.store.has_graded(event_id):
            log.info("event_already_graded", event_id=event_id)
            return []

        positions = self.store.list_positions(match_id=event_id, statuses=LIVE_STATUSES)
        if not positions:
            log.info("no_live_positions", event_id=event_id)
            return []

        log.info("grading_event", event_id=event_id, final_result=result_value,
                 positions=len(positions))
        results: list[GradingResult] = []
        errors: list[str] = []
        for pos in positions:
            try:
                outcome = self._apply(
                    pos.id,
                    lambda p: calculator.settle_full(p, result_value, now=now),
                    action="settled",
                    skip_terminal=True,
                )
            except SettlementError as exc:
                log.error("position_grading_failed", position_id=pos.id, error=str(exc))
                errors.append(f"{pos.id}: {exc}")
                results.append(GradingResult(
                    position_id=pos.id, user_id=pos.user_id, success=False, message=str(exc),
                ))
                continue

            if outcome is None:
                results.append(GradingResult(
                    position_id=pos.id, user_id=pos.user_id, success=False, message=ALREADY_TERMINAL,
                ))
                continue
            results.append(GradingResult(
                position_id=pos.id,
                user_id=pos.user_id,
                profit_loss=outcome.profit_loss,
                collateral_released=outcome.collateral_released,
                success=True,
            ))

        graded = [r for r in results if r.success]
        self.store.record_grading(GradingLog(
            event_id=event_id,
            sport=sport,
            final_result=result_value,
            positions_graded=len(graded),
            total_credited=sum((r.amount_credited for r in graded), Decimal("0")),
            method=method,
            status="failed" if errors else "success",
            error_message="; ".join(errors) or None,
            ts=now or datetime.now(timezone.utc),
        ))
        log.info("event_graded", event_id=event_id, graded=len(graded), failed=len(errors))
        return results

    # ── Accounts ──────────────────────────────────────────────

    def get_account(self, user_id: str) -> UserAccount:
        return self.store.ensure_account(user_id)

    def upgrade_account(self, user_id: str, wallet_address: str) -> UserAccount:
        """Convert a free account to cash mode."""
        with self._account_locks(user_id):
            for _ in range(MAX_CONFLICTS):
                account = self.store.ensure_account(user_id)
                upgraded = ledger.upgrade_to_cash(account, wallet_address, self._settings)
                try:
                    stored = self.store.save_account(upgraded)
                except StaleStateError:
                    continue
                log.info("account_upgraded", user_id=user_id)
                return stored
        raise StaleStateError("account", user_id, account.version)

    def summary(self, user_id: str) -> dict:
        """Balance, locked collateral and realised P&L for one user."""
        account = self.store.ensure_account(user_id)
        positions = self.store.list_positions(user_id=user_id)
        return {
            "user_id": user_id,
            "account_type": account.account_type,
            "balance": account.balance,
            "locked_collateral": calculator.total_locked_collateral(positions),
            "realised_pnl": calculator.total_profit_loss(positions),
            "open_positions": sum(1 for p in positions if p.is_live),
            "settled_positions": sum(1 for p in positions if p.status == "settled"),
            "bets_placed": account.bets_placed,
            "prompt_upgrade": ledger.should_prompt_upgrade(account, self._settings),
        }
