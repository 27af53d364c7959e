# src/checkthecrowd/services/protocol.py
"""Challenge, verify, consume, record: the wallet login and vote flows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from sqlalchemy.orm import Session

from checkthecrowd.core.errors import (
    MessageMismatch,
    NonceRejected,
    ProtocolError,
    RateLimited,
)
from checkthecrowd.core.settings import settings
from checkthecrowd.models import VOTE_CHOICES
from checkthecrowd.services.address import AddressCodec
from checkthecrowd.services.messages import build_login_message, build_vote_message
from checkthecrowd.services.nonce import ActiveNonce, IssuedNonce, NonceLedger
from checkthecrowd.services.rate_limit import RateLimiter
from checkthecrowd.services.session import SessionIssuer
from checkthecrowd.services.signature import SignatureVerifier, check_signature_format
from checkthecrowd.services.votes import TokenRef, VoteLedger, VoteProof, VoteRecord

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH: Final[int] = 500
MAX_NONCE_LENGTH: Final[int] = 128


@dataclass(frozen=True)
class LoginResult:
    wallet: str
    session_token: str
    expires_at: datetime


class WalletAuthProtocol:
    """Run the replay-safe login and vote flows for one request.

    Steps always run in the same order: rate-limit gate, boundary checks,
    active-nonce lookup, exact message comparison, signature verification,
    nonce consumption, and only then the authorized effect.
    """

    def __init__(
        self,
        db: Session,
        *,
        rate_limiter: RateLimiter | None = None,
        nonce_ledger: NonceLedger | None = None,
        vote_ledger: VoteLedger | None = None,
        session_issuer: SessionIssuer | None = None,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._nonces = nonce_ledger or NonceLedger(db)
        self._votes = vote_ledger or VoteLedger(db)
        self._sessions = session_issuer or SessionIssuer()

    def gate(self, action: str, client_key: str | None) -> None:
        """Consult the rate-limit gate for ``action``.

        Raises:
            RateLimited: If the gate denies the request.
        """
        if self._rate_limiter is None or client_key is None:
            return
        decision = self._rate_limiter.check(
            f"{action}:{client_key}",
            settings.rate_limits[action],
            settings.rate_limit_window_seconds,
        )
        if not decision.allowed:
            raise RateLimited(decision.retry_after_seconds)

    @staticmethod
    def _check_boundary(signature: str, message: str, nonce: str) -> None:
        check_signature_format(signature)
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ProtocolError(f"message is too long. Max {MAX_MESSAGE_LENGTH} characters.")
        if not nonce:
            raise ProtocolError("nonce is required.")
        if len(nonce) > MAX_NONCE_LENGTH:
            raise ProtocolError("nonce is too long.")

    def _active_nonce(self, wallet: str, nonce: str) -> ActiveNonce:
        active = self._nonces.lookup_active(wallet, nonce)
        if active is None:
            raise NonceRejected()
        return active

    def _consume(self, active: ActiveNonce) -> None:
        if not self._nonces.consume(active.id):
            # Losing a consume race is an expected rejection, not a fault.
            raise NonceRejected("Invalid or already-used nonce.")

    def issue_challenge(self, wallet: str, *, client_key: str | None = None) -> IssuedNonce:
        """Issue a nonce the wallet must embed in its next signed message."""
        self.gate("auth:nonce", client_key)
        return self._nonces.issue(wallet)

    def login(
        self,
        *,
        domain: str,
        wallet: str,
        signature: str,
        message: str,
        nonce: str,
        client_key: str | None = None,
    ) -> LoginResult:
        """Verify a signed login challenge and issue a session token.

        Raises:
            RateLimited, InvalidAddress, InvalidSignatureFormat, NonceRejected,
            MessageMismatch, InvalidSignature, WalletMismatch, ConfigError.
        """
        self.gate("auth:verify", client_key)
        self._sessions.ensure_configured()
        normalized_wallet = AddressCodec.normalize_wallet(wallet)
        self._check_boundary(signature, message, nonce)

        active = self._active_nonce(normalized_wallet, nonce)
        expected = build_login_message(
            domain=domain,
            wallet=normalized_wallet,
            nonce=nonce,
            issued_at=active.issued_at,
            expires_at=active.expires_at,
        )
        if message != expected:
            logger.warning("Submitted message differs from the issued challenge")
            raise MessageMismatch()

        SignatureVerifier.verify(message, signature, normalized_wallet)
        self._consume(active)

        token, payload = self._sessions.issue_with_payload(normalized_wallet)
        logger.info("Wallet login accepted for nonce %s", active.id)
        return LoginResult(
            wallet=normalized_wallet,
            session_token=token,
            expires_at=payload.expires_at_datetime,
        )

    def cast_vote(
        self,
        *,
        domain: str,
        chain: str,
        address: str,
        wallet: str,
        choice: str,
        signature: str,
        message: str,
        nonce: str,
        client_key: str | None = None,
    ) -> VoteRecord:
        """Verify a signed vote challenge and record the vote.

        Raises:
            RateLimited, InvalidAddress, InvalidSignatureFormat, NonceRejected,
            MessageMismatch, InvalidSignature, WalletMismatch, ProtocolError.
        """
        self.gate("votes", client_key)
        normalized_address = AddressCodec.normalize(chain, address)
        normalized_wallet = AddressCodec.normalize_wallet(wallet)
        if choice not in VOTE_CHOICES:
            raise ProtocolError(f"Invalid choice. Use one of: {', '.join(VOTE_CHOICES)}")
        self._check_boundary(signature, message, nonce)

        active = self._active_nonce(normalized_wallet, nonce)
        expected = build_vote_message(
            domain=domain,
            chain=chain,
            address=normalized_address,
            choice=choice,
            wallet=normalized_wallet,
            nonce=nonce,
            issued_at=active.issued_at,
            expires_at=active.expires_at,
        )
        if message != expected:
            logger.warning("Submitted message differs from the issued challenge")
            raise MessageMismatch()

        SignatureVerifier.verify(message, signature, normalized_wallet)
        self._consume(active)

        return self._votes.submit_vote(
            TokenRef(chain=chain, address=normalized_address),
            normalized_wallet,
            choice,
            VoteProof(signature=signature, message=message, nonce_value=nonce),
        )

