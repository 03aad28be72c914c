"""SQL-backed position store — conditional UPDATEs on a version column."""

from __future__ import annotations

from collections.abc import Callable, Iterable

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spread_core.db.tables.accounts import UserAccountRow
from spread_core.db.tables.grading import GradingLogRow
from spread_core.db.tables.positions import PositionRow
from spread_core.models import GradingLog, Position, UserAccount
from spread_core.settlement.errors import StaleStateError
from spread_core.store.base import PositionStore

log = structlog.get_logger("sql_store")

_POSITION_FIELDS = (
    "user_id", "match_id", "match_name", "market", "bet_type", "bet_price",
    "stake_per_point", "makeup_limit", "collateral_held", "status", "stake_open",
    "stake_closed", "final_result", "current_price", "profit_loss", "account_type",
    "settled_at",
)
_ACCOUNT_FIELDS = (
    "account_type", "virtual_balance", "wallet_balance", "bets_placed",
    "wallet_address", "wallet_connected_at",
)


def _position_values(position: Position) -> dict:
    values = {f: getattr(position, f) for f in _POSITION_FIELDS}
    values["created_at"] = position.timestamp
    return values


def _account_values(account: UserAccount) -> dict:
    return {f: getattr(account, f) for f in _ACCOUNT_FIELDS}


def _to_position(row: PositionRow) -> Position:
    return Position(
        id=row.id,
        timestamp=row.created_at,
        version=row.version,
        **{f: getattr(row, f) for f in _POSITION_FIELDS},
    )


def _to_account(row: UserAccountRow) -> UserAccount:
    return UserAccount(
        user_id=row.user_id,
        version=row.version,
        **{f: getattr(row, f) for f in _ACCOUNT_FIELDS},
    )


def _to_log(row: GradingLogRow) -> GradingLog:
    return GradingLog(
        event_id=row.event_id,
        sport=row.sport,
        final_result=row.final_result,
        positions_graded=row.positions_graded,
        total_credited=row.total_credited,
        method=row.method,
        status=row.status,
        error_message=row.error_message,
        ts=row.ts,
    )


class SqlStore(PositionStore):
    """Position store over SQLAlchemy. Opens one short session per operation."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        free_starting_balance: float = 1000,
    ) -> None:
        super().__init__(free_starting_balance)
        self._session_factory = session_factory

    # ── Positions ─────────────────────────────────────────────

    def get_position(self, position_id: str) -> Position | None:
        with self._session_factory() as session:
            row = session.get(PositionRow, position_id)
            return _to_position(row) if row is not None else None

    def list_positions(
        self,
        user_id: str | None = None,
        match_id: str | None = None,
        statuses: Iterable[str] | None = None,
    ) -> list[Position]:
        query = select(PositionRow)
        if user_id is not None:
            query = query.where(PositionRow.user_id == user_id)
        if match_id is not None:
            query = query.where(PositionRow.match_id == str(match_id))
        if statuses is not None:
            query = query.where(PositionRow.status.in_(list(statuses)))
        query = query.order_by(PositionRow.created_at, PositionRow.id)
        with self._session_factory() as session:
            return [_to_position(r) for r in session.execute(query).scalars().all()]

    # ── Accounts ──────────────────────────────────────────────

    def get_account(self, user_id: str) -> UserAccount | None:
        with self._session_factory() as session:
            row = session.get(UserAccountRow, user_id)
            return _to_account(row) if row is not None else None

    def ensure_account(self, user_id: str) -> UserAccount:
        existing = self.get_account(user_id)
        if existing is not None:
            return existing
        try:
            with self._session_factory() as session, session.begin():
                session.add(UserAccountRow(
                    user_id=user_id,
                    account_type="free",
                    virtual_balance=self.free_starting_balance,
                    wallet_balance=0,
                    bets_placed=0,
                    version=1,
                ))
            log.info("account_created", user_id=user_id)
        except IntegrityError:
            # Lost the race to another writer; theirs is as good as ours
            pass
        return self.get_account(user_id)

    def _write_account(self, session: Session, account: UserAccount) -> None:
        if account.version == 0:
            session.add(UserAccountRow(
                user_id=account.user_id,
                version=1,
                **_account_values(account),
            ))
            try:
                session.flush()
            except IntegrityError as exc:
                raise StaleStateError("account", account.user_id, 0) from exc
            return
        result = session.execute(
            update(UserAccountRow)
            .where(
                UserAccountRow.user_id == account.user_id,
                UserAccountRow.version == account.version,
            )
            .values(version=account.version + 1, **_account_values(account))
        )
        if result.rowcount != 1:
            raise StaleStateError("account", account.user_id, account.version)

    def save_account(self, account: UserAccount) -> UserAccount:
        with self._session_factory() as session, session.begin():
            self._write_account(session, account)
        return account.model_copy(update={"version": account.version + 1})

    # ── Atomic write ──────────────────────────────────────────

    def commit(self, position: Position, account: UserAccount) -> tuple[Position, UserAccount]:
        with self._session_factory() as session, session.begin():
            if position.version == 0:
                session.add(PositionRow(id=position.id, version=1, **_position_values(position)))
                try:
                    session.flush()
                except IntegrityError as exc:
                    raise StaleStateError("position", position.id, 0) from exc
            else:
                result = session.execute(
                    update(PositionRow)
                    .where(
                        PositionRow.id == position.id,
                        PositionRow.version == position.version,
                    )
                    .values(version=position.version + 1, **_position_values(position))
                )
                if result.rowcount != 1:
                    raise StaleStateError("position", position.id, position.version)
            self._write_account(session, account)

        return (
            position.model_copy(update={"version": position.version + 1}),
            account.model_copy(update={"version": account.version + 1}),
        )

    # ── Grading logs ──────────────────────────────────────────

    def has_graded(self, event_id: str) -> bool:
        with self._session_factory() as session:
            row = session.execute(
                select(GradingLogRow.id)
                .where(
                    GradingLogRow.event_id == str(event_id),
                    GradingLogRow.status == "success",
                )
                .limit(1)
            ).first()
            return row is not None

    def record_grading(self, entry: GradingLog) -> None:
        with self._session_factory() as session, session.begin():
            session.add(GradingLogRow(
                event_id=entry.event_id,
                sport=entry.sport,
                final_result=entry.final_result,
                positions_graded=entry.positions_graded,
                total_credited=entry.total_credited,
                method=entry.method,
                status=entry.status,
                error_message=entry.error_message,
                ts=entry.ts,
            ))

    def grading_logs(self, event_id: str | None = None) -> list[GradingLog]:
        query = select(GradingLogRow).order_by(GradingLogRow.ts, GradingLogRow.id)
        if event_id is not None:
            query = query.where(GradingLogRow.event_id == str(event_id))
        with self._session_factory() as session:
            return [_to_log(r) for r in session.execute(query).scalars().all()]
