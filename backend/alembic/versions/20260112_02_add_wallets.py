"""add provider backed wallets

Revision ID: 20260112_02
Revises: 20260105_01
Create Date: 2026-01-12 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260112_02"
down_revision = "20260105_01"
branch_labels = None
depends_on = None


WALLET_STATUS = sa.Enum("active", "suspended", "closed", name="wallet_status")


def upgrade() -> None:
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("wallet_id", sa.String(length=100), nullable=False),
        sa.Column("account_number", sa.String(length=20), nullable=True),
        sa.Column("bank_code", sa.String(length=10), nullable=True),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NGN"),
        sa.Column("status", WALLET_STATUS, nullable=False, server_default="active"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_wallets_user_id"),
        sa.UniqueConstraint("wallet_id", name="uq_wallets_wallet_id"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_wallets_status", "wallets", ["status"])


def downgrade() -> None:
    op.drop_index("ix_wallets_status", table_name="wallets")
    op.drop_table("wallets")

    WALLET_STATUS.drop(op.get_bind(), checkfirst=False)
