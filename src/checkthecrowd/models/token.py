# src/checkthecrowd/models/token.py
"""SQLAlchemy model for tokens that can receive votes."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checkthecrowd.db.session import Base
from checkthecrowd.db.time import utcnow


class Token(Base):
    """Token identified by its (chain, normalized address) pair."""

    __tablename__ = "token"
    __table_args__ = (
        UniqueConstraint("chain", "address", name="uq_token_chain_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chain: Mapped[str] = mapped_column(String(16), nullable=False)
    address: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    votes: Mapped[list["Vote"]] = relationship("Vote", back_populates="token")  # noqa: F821
