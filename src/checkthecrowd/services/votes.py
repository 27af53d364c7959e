# src/checkthecrowd/services/votes.py
"""Atomic vote recording with an append-only audit trail."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Table, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkthecrowd.db.time import ensure_utc, utcnow
from checkthecrowd.models import VERIFICATION_METHODS, VOTE_CHOICES, Token, Vote, VoteHistory
from checkthecrowd.services.address import AddressCodec

logger = logging.getLogger(__name__)

_INSERT_BUILDERS: dict[str, Callable[[Table], Any]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class TokenRef:
    """Reference to a token by chain and address."""

    chain: str
    address: str


@dataclass(frozen=True)
class VoteProof:
    """Proof material stored alongside a vote."""

    signature: str | None = None
    message: str | None = None
    nonce_value: str | None = None
    verification_method: str = "signed"


@dataclass(frozen=True)
class TokenRecord:
    chain: str
    address: str
    created_at: datetime


@dataclass(frozen=True)
class VoteRecord:
    """Vote as committed to the ledger."""

    chain: str
    address: str
    voter_wallet_key: str
    choice: str
    previous_choice: str | None
    signature: str | None
    message: str | None
    created_at: datetime
    updated_at: datetime


def _insert_for(db: Session, table: Table) -> Any:
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BUILDERS[dialect](table)
    except KeyError as err:
        raise NotImplementedError(f"Upserts are not supported on {dialect!r}") from err


class VoteLedger:
    """Own Token, Vote and VoteHistory rows.

    ``submit_vote`` performs its token, vote and history writes inside one
    transaction; readers never see a vote update without its history row.
    """

    def __init__(self, db: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    def _ensure_token(self, chain: str, address: str) -> Token:
        stmt = (
            _insert_for(self._db, Token.__table__)
            .values(chain=chain, address=address, created_at=self._clock())
            .on_conflict_do_nothing(index_elements=["chain", "address"])
        )
        self._db.execute(stmt)
        return self._db.execute(
            select(Token).where(Token.chain == chain, Token.address == address)
        ).scalar_one()

    def register_token(self, chain: str, address: str) -> TokenRecord:
        """Create the token row if absent; a no-op otherwise."""
        normalized = AddressCodec.normalize(chain, address)
        try:
            token = self._ensure_token(chain, normalized)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise
        return TokenRecord(
            chain=token.chain,
            address=token.address,
            created_at=ensure_utc(token.created_at),
        )

    def submit_vote(
        self,
        token_ref: TokenRef,
        voter_wallet: str,
        choice: str,
        proof: VoteProof,
    ) -> VoteRecord:
        """Record ``choice`` as the wallet's live vote and log the transition.

        Args:
            token_ref: Token being voted on; created on first vote.
            voter_wallet: Wallet casting the vote. Only its key is stored.
            choice: One of ``VOTE_CHOICES``.
            proof: Signature material and nonce that authorized the vote.

        Raises:
            InvalidAddress: If the token address or wallet is malformed.
            ValueError: If the choice or verification method is unknown.
            SQLAlchemyError: If storage fails; nothing is committed.
        """
        if choice not in VOTE_CHOICES:
            raise ValueError(f"Invalid choice. Use one of: {', '.join(VOTE_CHOICES)}")
        if proof.verification_method not in VERIFICATION_METHODS:
            raise ValueError(f"Unknown verification method: {proof.verification_method!r}")

        address = AddressCodec.normalize(token_ref.chain, token_ref.address)
        wallet_key = AddressCodec.wallet_key(voter_wallet)
        now = self._clock()

        try:
            token = self._ensure_token(token_ref.chain, address)

            previous_choice = self._db.execute(
                select(Vote.choice)
                .where(Vote.token_id == token.id, Vote.voter_wallet_key == wallet_key)
                .with_for_update()
            ).scalar_one_or_none()

            upsert = _insert_for(self._db, Vote.__table__).values(
                token_id=token.id,
                voter_wallet_key=wallet_key,
                choice=choice,
                signature=proof.signature,
                message=proof.message,
                verification_method=proof.verification_method,
                created_at=now,
                updated_at=now,
            )
            upsert = upsert.on_conflict_do_update(
                index_elements=["token_id", "voter_wallet_key"],
                set_={
                    "choice": upsert.excluded.choice,
                    "signature": upsert.excluded.signature,
                    "message": upsert.excluded.message,
                    "verification_method": upsert.excluded.verification_method,
                    "updated_at": upsert.excluded.updated_at,
                },
            )
            self._db.execute(upsert)

            self._db.add(
                VoteHistory(
                    token_id=token.id,
                    voter_wallet_key=wallet_key,
                    previous_choice=previous_choice,
                    new_choice=choice,
                    signature=proof.signature,
                    message=proof.message,
                    verification_method=proof.verification_method,
                    nonce_value=proof.nonce_value,
                    created_at=now,
                )
            )
            self._db.flush()

            vote = self._db.execute(
                select(Vote)
                .where(Vote.token_id == token.id, Vote.voter_wallet_key == wallet_key)
                .execution_options(populate_existing=True)
            ).scalar_one()
            record = VoteRecord(
                chain=token.chain,
                address=token.address,
                voter_wallet_key=vote.voter_wallet_key,
                choice=vote.choice,
                previous_choice=previous_choice,
                signature=vote.signature,
                message=vote.message,
                created_at=ensure_utc(vote.created_at),
                updated_at=ensure_utc(vote.updated_at),
            )
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Vote write rolled back for wallet key %s", wallet_key)
            raise

        logger.info(
            "Recorded vote %s -> %s on %s:%s for wallet key %s",
            previous_choice,
            choice,
            record.chain,
            record.address,
            wallet_key,
        )
        return record
