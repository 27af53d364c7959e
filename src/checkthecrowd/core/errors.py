"""Error taxonomy for the wallet authentication and voting protocol.

Every error is request-local: it carries a user-facing ``reason`` and an
HTTP-style ``status_code`` hint for whatever transport layer surfaces it.
"""

from __future__ import annotations


class ProtocolError(Exception):
    """Base class for protocol failures surfaced to the caller."""

    status_code: int = 400
    default_reason: str = "Request rejected."

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class InvalidAddress(ProtocolError):
    """Address or wallet does not match the chain's address grammar."""

    default_reason = "Invalid address for selected chain."


class InvalidSignature(ProtocolError):
    """Signature could not be decoded or recovery failed."""

    default_reason = "Invalid signature."


class InvalidSignatureFormat(InvalidSignature):
    """Signature rejected by the boundary checks before any cryptography."""

    default_reason = "Invalid signature format."


class WalletMismatch(ProtocolError):
    """Signature is valid but was not produced by the claimed wallet."""

    status_code = 401
    default_reason = "Signature does not match wallet."


class NonceRejected(ProtocolError):
    """Nonce is unknown, expired, or already used.

    All three cases share this one error.
    """

    status_code = 401
    default_reason = "Invalid or expired nonce."


class MessageMismatch(ProtocolError):
    """Submitted text differs from the rendered challenge."""

    default_reason = "Invalid signed message content."


class ConfigError(ProtocolError):
    """Server configuration prevents the capability from operating."""

    status_code = 500
    default_reason = "CHECK_THE_CROWD_SESSION_SECRET is required (min 16 chars)."


class RateLimited(ProtocolError):
    """The external rate-limit gate denied the request."""

    status_code = 429
    default_reason = "Too many requests. Try again later."

    def __init__(self, retry_after_seconds: int, reason: str | None = None) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(reason)


class IssueFailed(ProtocolError):
    """A challenge could not be stored; safe to retry."""

    status_code = 503
    default_reason = "Could not issue a challenge. Please retry."


__all__ = [
    "ConfigError",
    "InvalidAddress",
    "InvalidSignature",
    "InvalidSignatureFormat",
    "IssueFailed",
    "MessageMismatch",
    "NonceRejected",
    "ProtocolError",
    "RateLimited",
    "WalletMismatch",
]
