"""Position store abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from decimal import Decimal

from spread_core.models import GradingLog, Position, UserAccount


class PositionStore(ABC):
    """Keyed store for positions, accounts and grading logs.

    Records carry a ``version``; :meth:`commit` writes a position and its
    owner's account together only if both still have the version they were
    loaded with, and bumps it. Version 0 means "not yet persisted".
    Implementations return copies, never live references.
    """

    def __init__(self, free_starting_balance: float = 1000) -> None:
        self.free_starting_balance = Decimal(str(free_starting_balance))

    # ── Positions ─────────────────────────────────────────────

    @abstractmethod
    def get_position(self, position_id: str) -> Position | None:
        ...

    @abstractmethod
    def list_positions(
        self,
        user_id: str | None = None,
        match_id: str | None = None,
        statuses: Iterable[str] | None = None,
    ) -> list[Position]:
        """Positions matching all given filters, oldest first."""
        ...

    def find_position(
        self,
        user_id: str,
        match_ref: str,
        statuses: Iterable[str] | None = None,
    ) -> Position | None:
        """First of the user's positions whose match id equals *match_ref*
        or whose match name contains it (case-insensitive)."""
        ref = str(match_ref)
        needle = ref.lower()
        for pos in self.list_positions(user_id=user_id, statuses=statuses):
            if pos.match_id == ref:
                return pos
            if pos.match_name and needle in pos.match_name.lower():
                return pos
        return None

    # ── Accounts ──────────────────────────────────────────────

    @abstractmethod
    def get_account(self, user_id: str) -> UserAccount | None:
        ...

    @abstractmethod
    def ensure_account(self, user_id: str) -> UserAccount:
        """Return the account, creating a free one with the starting balance if absent."""
        ...

    @abstractmethod
    def save_account(self, account: UserAccount) -> UserAccount:
        """Conditionally write an account on its own (e.g. upgrades)."""
        ...

    # ── Atomic write ──────────────────────────────────────────

    @abstractmethod
    def commit(self, position: Position, account: UserAccount) -> tuple[Position, UserAccount]:
        """Write *position* and *account* atomically.

        Raises StaleStateError if either record's persisted version differs
        from the one it carries. Returns the stored copies with bumped versions.
        """
        ...

    # ── Grading logs ──────────────────────────────────────────

    @abstractmethod
    def has_graded(self, event_id: str) -> bool:
        """True if a successful grading log exists for the event."""
        ...

    @abstractmethod
    def record_grading(self, entry: GradingLog) -> None:
        ...

    @abstractmethod
    def grading_logs(self, event_id: str | None = None) -> list[GradingLog]:
        ...
