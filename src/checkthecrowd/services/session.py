# src/checkthecrowd/services/session.py
"""Signed, time-boxed wallet sessions carried in an HTTP-only cookie."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Final

from fastapi import Request, Response

from checkthecrowd.core.errors import ConfigError
from checkthecrowd.core.settings import settings
from checkthecrowd.services.address import AddressCodec

logger = logging.getLogger(__name__)

SESSION_VERSION: Final[int] = 1
MIN_SECRET_LENGTH: Final[int] = 16


@dataclass(frozen=True)
class SessionPayload:
    """Verified session contents."""

    wallet: str
    issued_at: int
    expires_at: int
    version: int = SESSION_VERSION

    @property
    def wallet_key(self) -> str:
        return AddressCodec.wallet_key(self.wallet)

    @property
    def expires_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, UTC)

    def to_claims(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "v": self.version,
        }


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


class SessionIssuer:
    """Issue and verify ``<payload>.<hmac>`` session tokens.

    The payload is base64url JSON; the signature is base64url HMAC-SHA256
    over the encoded payload. There is no unsigned or default-keyed mode:
    without a secret of at least 16 characters both operations raise
    ``ConfigError``.
    """

    def __init__(
        self,
        secret: str | None = None,
        *,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret if secret is not None else settings.session_secret
        self._ttl_seconds = ttl_seconds or settings.session_ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def ensure_configured(self) -> None:
        """Raise ``ConfigError`` unless a usable secret is configured."""
        if not self._secret or len(self._secret) < MIN_SECRET_LENGTH:
            raise ConfigError()

    def _sign(self, data: str) -> str:
        self.ensure_configured()
        digest = hmac.new(self._secret.encode("utf-8"), data.encode("ascii"), hashlib.sha256)
        return _b64url_encode(digest.digest())

    def issue(self, wallet: str) -> str:
        """Return a signed session token for ``wallet``."""
        token, _ = self.issue_with_payload(wallet)
        return token

    def issue_with_payload(self, wallet: str) -> tuple[str, SessionPayload]:
        """Return a signed session token for ``wallet`` and its payload.

        Raises:
            InvalidAddress: If the wallet is malformed.
            ConfigError: If no usable secret is configured.
        """
        normalized = AddressCodec.normalize_wallet(wallet)
        now = int(self._clock())
        payload = SessionPayload(
            wallet=normalized,
            issued_at=now,
            expires_at=now + self._ttl_seconds,
        )
        encoded = _b64url_encode(
            json.dumps(payload.to_claims(), separators=(",", ":")).encode("utf-8")
        )
        token = f"{encoded}.{self._sign(encoded)}"
        logger.info("Issued session for wallet key %s", payload.wallet_key)
        return token, payload

    def verify(self, token: str) -> SessionPayload | None:
        """Return the payload of a valid, unexpired token, else ``None``.

        The signature is checked in constant time before any payload field
        is decoded or trusted.

        Raises:
            ConfigError: If no usable secret is configured.
        """
        encoded, sep, signature = token.partition(".")
        if not sep or not encoded or not signature or "." in signature:
            return None
        if not encoded.isascii() or not signature.isascii():
            return None

        expected = self._sign(encoded)
        if not secrets.compare_digest(signature.encode("ascii"), expected.encode("ascii")):
            return None

        try:
            claims = json.loads(_b64url_decode(encoded))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None
        if not isinstance(claims, dict) or claims.get("v") != SESSION_VERSION:
            return None

        wallet = claims.get("wallet")
        if not isinstance(wallet, str) or not AddressCodec.is_valid_wallet(wallet):
            return None
        if wallet != AddressCodec.normalize_wallet(wallet):
            return None

        issued_at, expires_at = claims.get("iat"), claims.get("exp")
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            return None
        if expires_at <= int(self._clock()):
            return None

        return SessionPayload(wallet=wallet, issued_at=issued_at, expires_at=expires_at)


def set_session_cookie(response: Response, wallet: str, issuer: SessionIssuer | None = None) -> str:
    """Attach a fresh session cookie for ``wallet`` and return the token."""
    issuer = issuer or SessionIssuer()
    token = issuer.issue(wallet)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=issuer.ttl_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return token


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie on the client."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        max_age=0,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def session_from_request(request: Request, issuer: SessionIssuer | None = None) -> SessionPayload | None:
    """Return the verified session carried by ``request``, if any."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    return (issuer or SessionIssuer()).verify(token)
