"""SQLAlchemy ORM model for the event grading audit log."""

from sqlalchemy import BigInteger, Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from spread_core.db.base import Base

SCHEMA = "spread_betting"


class GradingLogRow(Base):
    __tablename__ = "grading_logs"
    __table_args__ = (
        Index("ix_grading_logs_event_status", "event_id", "status"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(Text, nullable=False)
    sport: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_result: Mapped[float] = mapped_column(Numeric, nullable=False)
    positions_graded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_credited: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    method: Mapped[str] = mapped_column(Text, nullable=False, default="manual")
    status: Mapped[str] = mapped_column(Text, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    ts: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
