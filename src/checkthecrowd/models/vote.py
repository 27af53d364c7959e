# src/checkthecrowd/models/vote.py
"""Models capturing wallet votes on tokens and their audit trail."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checkthecrowd.db.session import Base
from checkthecrowd.db.time import utcnow

VOTE_CHOICES = ("appears_legit", "suspicious", "unclear")
VERIFICATION_METHODS = ("signed", "connected_only")

_CHOICE_SQL = ", ".join(f"'{choice}'" for choice in VOTE_CHOICES)


class Vote(Base):
    """Live vote of one wallet on one token.

    A repeat vote overwrites the row in place; the unique key keeps at most
    one live vote per (token, wallet).
    """

    __tablename__ = "vote"
    __table_args__ = (
        UniqueConstraint("token_id", "voter_wallet_key", name="uq_vote_token_wallet"),
        CheckConstraint(f"choice IN ({_CHOICE_SQL})", name="ck_vote_choice"),
        Index("ix_vote_token_id", "token_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("token.id", ondelete="CASCADE"),
        nullable=False,
    )
    voter_wallet_key: Mapped[str] = mapped_column(String(64), nullable=False)
    choice: Mapped[str] = mapped_column(String(32), nullable=False)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    verification_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="signed",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    token: Mapped["Token"] = relationship("Token", back_populates="votes")  # noqa: F821


class VoteHistory(Base):
    """Append-only record of every vote submission that reached the ledger."""

    __tablename__ = "vote_history"
    __table_args__ = (
        Index("ix_vote_history_token_wallet", "token_id", "voter_wallet_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("token.id", ondelete="CASCADE"),
        nullable=False,
    )
    voter_wallet_key: Mapped[str] = mapped_column(String(64), nullable=False)
    previous_choice: Mapped[str | None] = mapped_column(String(32), nullable=True)
    new_choice: Mapped[str] = mapped_column(String(32), nullable=False)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    verification_method: Mapped[str] = mapped_column(String(32), nullable=False)
    nonce_value: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
