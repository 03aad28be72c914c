"""Create spread_betting schema with positions, user accounts and grading logs.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "spread_betting"


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    op.create_table(
        "user_accounts",
        sa.Column("user_id", sa.Text, primary_key=True),
        sa.Column("account_type", sa.Text, nullable=False, server_default="free"),
        sa.Column("virtual_balance", sa.Numeric, nullable=False, server_default="1000"),
        sa.Column("wallet_balance", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("bets_placed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("wallet_address", sa.Text, nullable=True),
        sa.Column("wallet_connected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        schema=SCHEMA,
    )

    op.create_table(
        "positions",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("match_id", sa.Text, nullable=False),
        sa.Column("match_name", sa.Text, nullable=True),
        sa.Column("market", sa.Text, nullable=False),
        sa.Column("bet_type", sa.Text, nullable=False),
        sa.Column("bet_price", sa.Numeric, nullable=False),
        sa.Column("stake_per_point", sa.Numeric, nullable=False),
        sa.Column("makeup_limit", sa.Numeric, nullable=True),
        sa.Column("collateral_held", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("status", sa.Text, nullable=False, server_default="open"),
        sa.Column("stake_open", sa.Numeric, nullable=False),
        sa.Column("stake_closed", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("final_result", sa.Numeric, nullable=True),
        sa.Column("current_price", sa.Numeric, nullable=True),
        sa.Column("profit_loss", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("account_type", sa.Text, nullable=False, server_default="free"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.CheckConstraint("bet_type IN ('buy', 'sell')", name="ck_positions_bet_type"),
        sa.CheckConstraint(
            "status IN ('open', 'partially_closed', 'settled', 'cancelled')",
            name="ck_positions_status",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_positions_match_status", "positions", ["match_id", "status"], schema=SCHEMA,
    )
    op.create_index("ix_positions_user", "positions", ["user_id"], schema=SCHEMA)

    op.create_table(
        "grading_logs",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Text, nullable=False),
        sa.Column("sport", sa.Text, nullable=True),
        sa.Column("final_result", sa.Numeric, nullable=False),
        sa.Column("positions_graded", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_credited", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("method", sa.Text, nullable=False, server_default="manual"),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_grading_logs_event_status", "grading_logs", ["event_id", "status"], schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("grading_logs", schema=SCHEMA)
    op.drop_table("positions", schema=SCHEMA)
    op.drop_table("user_accounts", schema=SCHEMA)
    op.execute(f"DROP SCHEMA IF EXISTS {SCHEMA}")
