"""SQLAlchemy ORM model for user accounts (wallets)."""

from sqlalchemy import Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from spread_core.db.base import Base

SCHEMA = "spread_betting"


class UserAccountRow(Base):
    __tablename__ = "user_accounts"
    __table_args__ = {"schema": SCHEMA}

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    account_type: Mapped[str] = mapped_column(Text, nullable=False, default="free")
    virtual_balance: Mapped[float] = mapped_column(Numeric, nullable=False, default=1000)
    wallet_balance: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    bets_placed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wallet_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    wallet_connected_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
