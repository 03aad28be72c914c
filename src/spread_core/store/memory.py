"""In-process position store — dicts behind a lock. Used for demo/local state and tests."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from spread_core.models import GradingLog, Position, UserAccount
from spread_core.settlement.errors import StaleStateError
from spread_core.store.base import PositionStore


class InMemoryStore(PositionStore):
    """Thread-safe dict store with optimistic version checks."""

    def __init__(self, free_starting_balance: float = 1000) -> None:
        super().__init__(free_starting_balance)
        self._lock = threading.Lock()
        self._positions: dict[str, Position] = {}
        self._accounts: dict[str, UserAccount] = {}
        self._logs: list[GradingLog] = []

    def get_position(self, position_id: str) -> Position | None:
        with self._lock:
            pos = self._positions.get(position_id)
            return pos.model_copy() if pos is not None else None

    def list_positions(
        self,
        user_id: str | None = None,
        match_id: str | None = None,
        statuses: Iterable[str] | None = None,
    ) -> list[Position]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            rows = [
                p.model_copy()
                for p in self._positions.values()
                if (user_id is None or p.user_id == user_id)
                and (match_id is None or p.match_id == str(match_id))
                and (wanted is None or p.status in wanted)
            ]
        return sorted(rows, key=lambda p: p.timestamp)

    def get_account(self, user_id: str) -> UserAccount | None:
        with self._lock:
            acct = self._accounts.get(user_id)
            return acct.model_copy() if acct is not None else None

    def ensure_account(self, user_id: str) -> UserAccount:
        with self._lock:
            acct = self._accounts.get(user_id)
            if acct is None:
                acct = UserAccount(
                    user_id=user_id,
                    virtual_balance=self.free_starting_balance,
                    version=1,
                )
                self._accounts[user_id] = acct
            return acct.model_copy()

    def _check_account(self, account: UserAccount) -> None:
        current = self._accounts.get(account.user_id)
        current_version = current.version if current is not None else 0
        if current_version != account.version:
            raise StaleStateError("account", account.user_id, account.version)

    def save_account(self, account: UserAccount) -> UserAccount:
        with self._lock:
            self._check_account(account)
            stored = account.model_copy(update={"version": account.version + 1})
            self._accounts[account.user_id] = stored
            return stored.model_copy()

    def commit(self, position: Position, account: UserAccount) -> tuple[Position, UserAccount]:
        with self._lock:
            current = self._positions.get(position.id)
            current_version = current.version if current is not None else 0
            if current_version != position.version:
                raise StaleStateError("position", position.id, position.version)
            self._check_account(account)

            stored_pos = position.model_copy(update={"version": position.version + 1})
            stored_acct = account.model_copy(update={"version": account.version + 1})
            self._positions[position.id] = stored_pos
            self._accounts[account.user_id] = stored_acct
            return stored_pos.model_copy(), stored_acct.model_copy()

    def has_graded(self, event_id: str) -> bool:
        with self._lock:
            return any(
                log.event_id == str(event_id) and log.status == "success"
                for log in self._logs
            )

    def record_grading(self, entry: GradingLog) -> None:
        with self._lock:
            self._logs.append(entry.model_copy())

    def grading_logs(self, event_id: str | None = None) -> list[GradingLog]:
        with self._lock:
            return [
                log.model_copy()
                for log in self._logs
                if event_id is None or log.event_id == str(event_id)
            ]
