"""initial vote ledger

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:12:41.118204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create nonce, token, vote and vote history tables."""
    op.create_table(
        "auth_nonce",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_key", sa.String(length=64), nullable=False),
        sa.Column("value", sa.String(length=128), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_key", "value", name="uq_auth_nonce_wallet_value"),
    )
    op.create_index("ix_auth_nonce_wallet_key", "auth_nonce", ["wallet_key"])

    op.create_table(
        "token",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("chain", sa.String(length=16), nullable=False),
        sa.Column("address", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("chain", "address", name="uq_token_chain_address"),
    )

    op.create_table(
        "vote",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token_id", sa.Integer(), nullable=False),
        sa.Column("voter_wallet_key", sa.String(length=64), nullable=False),
        sa.Column("choice", sa.String(length=32), nullable=False),
        sa.Column("signature", sa.Text(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("verification_method", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "choice IN ('appears_legit', 'suspicious', 'unclear')",
            name="ck_vote_choice",
        ),
        sa.ForeignKeyConstraint(["token_id"], ["token.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_id", "voter_wallet_key", name="uq_vote_token_wallet"),
    )
    op.create_index("ix_vote_token_id", "vote", ["token_id"])

    op.create_table(
        "vote_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token_id", sa.Integer(), nullable=False),
        sa.Column("voter_wallet_key", sa.String(length=64), nullable=False),
        sa.Column("previous_choice", sa.String(length=32), nullable=True),
        sa.Column("new_choice", sa.String(length=32), nullable=False),
        sa.Column("signature", sa.Text(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("verification_method", sa.String(length=32), nullable=False),
        sa.Column("nonce_value", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["token_id"], ["token.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_vote_history_token_wallet",
        "vote_history",
        ["token_id", "voter_wallet_key"],
    )


def downgrade() -> None:
    """Drop the vote ledger tables."""
    op.drop_index("ix_vote_history_token_wallet", table_name="vote_history")
    op.drop_table("vote_history")
    op.drop_index("ix_vote_token_id", table_name="vote")
    op.drop_table("vote")
    op.drop_table("token")
    op.drop_index("ix_auth_nonce_wallet_key", table_name="auth_nonce")
    op.drop_table("auth_nonce")
