# src/checkthecrowd/services/messages.py
"""Rendering of the exact text a wallet signs.

The templates below are the wire format. The verifier re-renders the same
text and requires a byte-for-byte match, so any edit to wording, order or
spacing invalidates every outstanding challenge.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Final

from checkthecrowd.db.time import isoformat_z
from checkthecrowd.services.address import AddressCodec

NOTICE_LINE: Final[str] = "Notice: No transaction will be sent. No gas fee."

LOGIN_TEMPLATE: Final[str] = (
    "CheckTheCrowd Login Signature\n\n"
    "Action: Login\n"
    "Domain: {domain}\n"
    "Wallet: {wallet}\n"
    "Nonce: {nonce}\n"
    "Issued At: {issued_at}\n"
    "Expires At: {expires_at}\n\n"
    + NOTICE_LINE
)

VOTE_TEMPLATE: Final[str] = (
    "CheckTheCrowd Vote Signature\n\n"
    "Action: Vote\n"
    "Domain: {domain}\n"
    "Token: {chain}:{address}\n"
    "Choice: {choice}\n"
    "Wallet: {wallet}\n"
    "Nonce: {nonce}\n"
    "Issued At: {issued_at}\n"
    "Expires At: {expires_at}\n\n"
    + NOTICE_LINE
)


def _timestamp(value: datetime | str) -> str:
    return value if isinstance(value, str) else isoformat_z(value)


def build_login_message(
    *,
    domain: str,
    wallet: str,
    nonce: str,
    issued_at: datetime | str,
    expires_at: datetime | str,
) -> str:
    """Render the login challenge text."""
    return LOGIN_TEMPLATE.format(
        domain=domain,
        wallet=AddressCodec.normalize_wallet(wallet),
        nonce=nonce,
        issued_at=_timestamp(issued_at),
        expires_at=_timestamp(expires_at),
    )


def build_vote_message(
    *,
    domain: str,
    chain: str,
    address: str,
    choice: str,
    wallet: str,
    nonce: str,
    issued_at: datetime | str,
    expires_at: datetime | str,
) -> str:
    """Render the vote challenge text."""
    return VOTE_TEMPLATE.format(
        domain=domain,
        chain=chain,
        address=AddressCodec.normalize(chain, address),
        choice=choice,
        wallet=AddressCodec.normalize_wallet(wallet),
        nonce=nonce,
        issued_at=_timestamp(issued_at),
        expires_at=_timestamp(expires_at),
    )


_BUILDERS: Final = {
    "login": build_login_message,
    "vote": build_vote_message,
}


def build(action: str, fields: Mapping[str, Any]) -> str:
    """Render the challenge text for ``action`` ("login" or "vote")."""
    try:
        builder = _BUILDERS[action]
    except KeyError as err:
        raise ValueError(f"Unknown signing action: {action!r}") from err
    return builder(**fields)
