"""SQLAlchemy ORM model for spread-bet positions."""

from sqlalchemy import Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from spread_core.db.base import Base

SCHEMA = "spread_betting"


class PositionRow(Base):
    __tablename__ = "positions"
    __table_args__ = (
        Index("ix_positions_match_status", "match_id", "status"),
        Index("ix_positions_user", "user_id"),
        {"schema": SCHEMA},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    match_id: Mapped[str] = mapped_column(Text, nullable=False)
    match_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    market: Mapped[str] = mapped_column(Text, nullable=False)
    bet_type: Mapped[str] = mapped_column(Text, nullable=False)
    bet_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    stake_per_point: Mapped[float] = mapped_column(Numeric, nullable=False)
    makeup_limit: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    collateral_held: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    stake_open: Mapped[float] = mapped_column(Numeric, nullable=False)
    stake_closed: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    final_result: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    current_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    profit_loss: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    account_type: Mapped[str] = mapped_column(Text, nullable=False, default="free")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    settled_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
