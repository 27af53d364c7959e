# src/checkthecrowd/services/signature.py
"""Wallet signature verification for signed challenges."""

from __future__ import annotations

import logging
import re
from typing import Final

import base58
from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from eth_account import Account
from eth_account.messages import encode_defunct

from checkthecrowd.core.errors import (
    InvalidSignature,
    InvalidSignatureFormat,
    WalletMismatch,
)
from checkthecrowd.services.address import AddressCodec, ChainFamily

logger = logging.getLogger(__name__)

MAX_SIGNATURE_LENGTH: Final[int] = 4096
MIN_SIGNATURE_LENGTH: Final[int] = 10
SIGNATURE_RE: Final = re.compile(r"^0x[0-9a-fA-F]+$")

# r || s || v for secp256k1 personal messages; raw R || S for Ed25519.
_SIGNATURE_BYTES: Final[dict[ChainFamily, int]] = {
    "evm": 65,
    "base58": 64,
}
_ED25519_PUBKEY_BYTES: Final[int] = 32


def check_signature_format(signature: str, family: ChainFamily | None = None) -> bytes:
    """Validate the textual shape of a signature and return its bytes.

    Runs before any cryptographic work so malformed input never reaches the
    recovery path.

    Raises:
        InvalidSignatureFormat: On non-hex, unprefixed, oversized or
            wrong-length input.
    """
    if not MIN_SIGNATURE_LENGTH <= len(signature) <= MAX_SIGNATURE_LENGTH:
        raise InvalidSignatureFormat("Invalid signature length.")
    if not SIGNATURE_RE.match(signature):
        raise InvalidSignatureFormat()
    if len(signature) % 2:
        raise InvalidSignatureFormat()
    raw = bytes.fromhex(signature[2:])
    if family is not None and len(raw) != _SIGNATURE_BYTES[family]:
        raise InvalidSignatureFormat("Invalid signature length.")
    return raw


class SignatureVerifier:
    """Check that a signature over a message came from the claimed wallet."""

    @staticmethod
    def recover_evm(message: str, signature: str) -> str:
        """Recover the normalized EVM address that signed ``message``.

        Uses the EIP-191 personal-message scheme wallets apply to
        ``personal_sign`` requests.
        """
        check_signature_format(signature, "evm")
        try:
            recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
        except Exception as err:
            raise InvalidSignature() from err
        return AddressCodec.normalize_family("evm", recovered)

    @staticmethod
    def _verify_ed25519(message: str, raw_signature: bytes, wallet: str) -> None:
        pubkey_bytes = base58.b58decode(wallet)
        if len(pubkey_bytes) != _ED25519_PUBKEY_BYTES:
            raise WalletMismatch()
        try:
            pubkey = Ed25519PublicKey.from_public_bytes(pubkey_bytes)
            pubkey.verify(raw_signature, message.encode("utf-8"))
        except (CryptoInvalidSignature, ValueError) as err:
            raise WalletMismatch() from err

    @staticmethod
    def verify(message: str, signature: str, claimed_wallet: str) -> str:
        """Verify ``signature`` over ``message`` against ``claimed_wallet``.

        Args:
            message: Exact text the wallet signed.
            signature: ``0x``-prefixed hex signature.
            claimed_wallet: Wallet the caller says produced the signature.

        Returns:
            The wallet key of the verified wallet.

        Raises:
            InvalidAddress: If the claimed wallet is malformed.
            InvalidSignatureFormat: If the signature fails the shape checks.
            InvalidSignature: If recovery fails.
            WalletMismatch: If the signature belongs to another wallet.
        """
        family = AddressCodec.wallet_family(claimed_wallet)
        wallet = AddressCodec.normalize_family(family, claimed_wallet)

        if family == "evm":
            recovered = SignatureVerifier.recover_evm(message, signature)
            if recovered != wallet:
                logger.warning(
                    "Signature for wallet key %s recovered to another wallet",
                    AddressCodec.wallet_key(wallet),
                )
                raise WalletMismatch()
        else:
            raw = check_signature_format(signature, family)
            SignatureVerifier._verify_ed25519(message, raw, wallet)

        return AddressCodec.wallet_key(wallet)
