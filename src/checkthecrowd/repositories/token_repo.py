"""Data access helpers for token read paths."""
from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from checkthecrowd.db.time import ensure_utc, utcnow
from checkthecrowd.models import Token, Vote
from checkthecrowd.services.address import AddressCodec
from checkthecrowd.services.consensus import ConsensusSummary, aggregate

__all__ = ["HotToken", "HotTokenPage", "TokenConsensus", "TokenRepository", "WalletVote"]

HOT_PAGE_SIZE_MAX = 20
NEW_TOKEN_WINDOW = timedelta(days=14)


@dataclass(frozen=True)
class TokenConsensus:
    exists: bool
    chain: str
    address: str
    summary: ConsensusSummary


@dataclass(frozen=True)
class WalletVote:
    choice: str
    updated_at: datetime


@dataclass(frozen=True)
class HotToken:
    chain: str
    address: str
    created_at: datetime
    vote_count: int
    badge: str | None = None


@dataclass(frozen=True)
class HotTokenPage:
    items: list[HotToken]
    page: int
    page_size: int
    total_items: int
    total_pages: int


class TokenRepository:
    """Thin wrapper around database access for token read paths."""

    def __init__(self, session: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session
        self._clock = clock

    def _get_token(self, chain: str, address: str) -> Token | None:
        return self.session.execute(
            select(Token).where(Token.chain == chain, Token.address == address)
        ).scalar_one_or_none()

    def get_consensus(self, chain: str, address: str) -> TokenConsensus:
        """Return the token's consensus, recomputed from its raw votes.

        Unknown tokens report ``exists=False`` with an empty tally.
        """
        normalized = AddressCodec.normalize(chain, address)
        token = self._get_token(chain, normalized)
        if token is None:
            return TokenConsensus(
                exists=False,
                chain=chain,
                address=normalized,
                summary=aggregate([]),
            )

        choices = self.session.execute(
            select(Vote.choice).where(Vote.token_id == token.id)
        ).scalars()
        return TokenConsensus(
            exists=True,
            chain=chain,
            address=normalized,
            summary=aggregate(choices),
        )

    def get_wallet_vote(self, chain: str, address: str, wallet: str) -> WalletVote | None:
        """Return the wallet's live vote on the token, if any."""
        normalized = AddressCodec.normalize(chain, address)
        wallet_key = AddressCodec.wallet_key(wallet)
        row = self.session.execute(
            select(Vote.choice, Vote.updated_at)
            .join(Token, Token.id == Vote.token_id)
            .where(
                Token.chain == chain,
                Token.address == normalized,
                Vote.voter_wallet_key == wallet_key,
            )
        ).first()
        if row is None:
            return None
        return WalletVote(choice=row.choice, updated_at=ensure_utc(row.updated_at))

    def list_hot(self, limit: int = HOT_PAGE_SIZE_MAX, page: int = 1) -> HotTokenPage:
        """Return a page of tokens, recently created ones first.

        ``limit`` is clamped to 1..20 and ``page`` to the available pages.
        Within each group tokens are ordered by address, then chain.
        """
        limit = min(max(1, limit), HOT_PAGE_SIZE_MAX)
        page = max(1, page)
        since = self._clock() - NEW_TOKEN_WINDOW

        vote_counts = (
            select(Vote.token_id, func.count(Vote.id).label("vote_count"))
            .group_by(Vote.token_id)
            .subquery()
        )
        rows = self.session.execute(
            select(
                Token.chain,
                Token.address,
                Token.created_at,
                func.coalesce(vote_counts.c.vote_count, 0).label("vote_count"),
            ).outerjoin(vote_counts, vote_counts.c.token_id == Token.id)
        ).all()

        items = [
            HotToken(
                chain=row.chain,
                address=row.address,
                created_at=ensure_utc(row.created_at),
                vote_count=int(row.vote_count),
                badge="NEW" if ensure_utc(row.created_at) >= since else None,
            )
            for row in rows
        ]
        items.sort(key=lambda item: (item.badge is None, item.address, item.chain))

        total_items = len(items)
        total_pages = max(1, math.ceil(total_items / limit))
        page = min(page, total_pages)
        start = (page - 1) * limit
        return HotTokenPage(
            items=items[start:start + limit],
            page=page,
            page_size=limit,
            total_items=total_items,
            total_pages=total_pages,
        )
