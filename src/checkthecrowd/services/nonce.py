# src/checkthecrowd/services/nonce.py
"""Single-use challenge nonces bound to a wallet."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from checkthecrowd.core.errors import IssueFailed
from checkthecrowd.core.settings import settings
from checkthecrowd.db.time import ensure_utc, truncate_ms, utcnow
from checkthecrowd.models import Nonce
from checkthecrowd.services.address import AddressCodec

logger = logging.getLogger(__name__)

NONCE_VALUE_BYTES = 16


@dataclass(frozen=True)
class IssuedNonce:
    """Challenge handed back to the caller after issue."""

    wallet_key: str
    value: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ActiveNonce:
    """Unused, unexpired nonce found by lookup."""

    id: int
    value: str
    issued_at: datetime
    expires_at: datetime


class NonceLedger:
    """Issue, look up and consume wallet challenges.

    Nonce rows are owned exclusively by this ledger. ``consume`` is the only
    write after issue and is a single conditional update, so two concurrent
    consumers of the same nonce race inside the database and exactly one wins.
    """

    def __init__(
        self,
        db: Session,
        *,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._ttl = ttl or timedelta(seconds=settings.nonce_ttl_seconds)
        self._clock = clock

    def _now(self) -> datetime:
        return truncate_ms(ensure_utc(self._clock()))

    def issue(self, wallet: str) -> IssuedNonce:
        """Persist a fresh random challenge for ``wallet``.

        Raises:
            InvalidAddress: If the wallet is malformed.
            IssueFailed: If storage rejected the row; the caller may retry.
        """
        wallet_key = AddressCodec.wallet_key(wallet)
        issued_at = self._now()
        expires_at = issued_at + self._ttl
        value = secrets.token_hex(NONCE_VALUE_BYTES)

        self._db.add(
            Nonce(
                wallet_key=wallet_key,
                value=value,
                issued_at=issued_at,
                expires_at=expires_at,
            )
        )
        try:
            self._db.commit()
        except IntegrityError as err:
            self._db.rollback()
            logger.warning("Nonce issue collided for wallet key %s", wallet_key)
            raise IssueFailed() from err

        logger.info("Issued nonce for wallet key %s (expires %s)", wallet_key, expires_at)
        return IssuedNonce(
            wallet_key=wallet_key,
            value=value,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def lookup_active(self, wallet: str, value: str) -> ActiveNonce | None:
        """Return the nonce if it exists, is unused and has not expired.

        Missing, used and expired nonces all yield ``None``.
        """
        wallet_key = AddressCodec.wallet_key(wallet)
        record = self._db.execute(
            select(Nonce)
            .where(Nonce.wallet_key == wallet_key, Nonce.value == value)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if record is None or record.used_at is not None:
            return None
        expires_at = ensure_utc(record.expires_at)
        if expires_at <= self._now():
            return None

        return ActiveNonce(
            id=record.id,
            value=record.value,
            issued_at=ensure_utc(record.issued_at),
            expires_at=expires_at,
        )

    def consume(self, nonce_id: int) -> bool:
        """Mark the nonce used if nobody has yet.

        Returns:
            True iff this call flipped ``used_at``; False for a lost race or an
            already-used nonce.
        """
        try:
            result = self._db.execute(
                update(Nonce)
                .where(Nonce.id == nonce_id, Nonce.used_at.is_(None))
                .values(used_at=self._now())
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Consuming nonce %s failed", nonce_id)
            raise
        consumed = result.rowcount == 1
        if not consumed:
            logger.warning("Nonce %s was already consumed", nonce_id)
        return consumed
