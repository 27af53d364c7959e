# src/checkthecrowd/models/nonce.py
"""Models supporting single-use wallet challenges."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from checkthecrowd.db.session import Base


class Nonce(Base):
    """Challenge issued to a wallet; usable at most once before it expires.

    Rows are retained after use or expiry so replays stay rejectable and
    auditable.
    """

    __tablename__ = "auth_nonce"
    __table_args__ = (
        UniqueConstraint("wallet_key", "value", name="uq_auth_nonce_wallet_value"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Hashed wallet; the plaintext address is never stored.
    wallet_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    value: Mapped[str] = mapped_column(String(128), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
