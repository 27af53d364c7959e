# src/checkthecrowd/services/address.py
"""Address normalization and wallet key derivation."""

from __future__ import annotations

import re
from typing import Final, Literal

import blake3

from checkthecrowd.core.errors import InvalidAddress

Chain = Literal["eth", "bsc", "sol"]
ChainFamily = Literal["evm", "base58"]

CHAIN_FAMILIES: Final[dict[str, ChainFamily]] = {
    "eth": "evm",
    "bsc": "evm",
    "sol": "base58",
}
CHAINS: Final[tuple[str, ...]] = tuple(CHAIN_FAMILIES)

_EVM_ADDRESS_RE: Final = re.compile(r"^0x[0-9a-fA-F]{40}$")
# Bitcoin alphabet: no 0, O, I or l.
_BASE58_ADDRESS_RE: Final = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
_WALLET_KEY_RE: Final = re.compile(r"^[0-9a-f]{64}$")


class AddressCodec:
    """Normalize and validate addresses per chain family."""

    @staticmethod
    def family(chain: str) -> ChainFamily:
        """Return the address family for ``chain``."""
        try:
            return CHAIN_FAMILIES[chain]
        except KeyError as err:
            raise InvalidAddress(
                f"Invalid chain. Use one of: {', '.join(CHAINS)}"
            ) from err

    @staticmethod
    def wallet_family(wallet: str) -> ChainFamily:
        """Infer the address family from the shape of a wallet string."""
        return "evm" if wallet.strip().lower().startswith("0x") else "base58"

    @staticmethod
    def normalize_family(family: ChainFamily, address: str) -> str:
        """Normalize ``address`` under the rules of ``family``."""
        cleaned = address.strip()
        if family == "evm":
            if not _EVM_ADDRESS_RE.match(cleaned):
                raise InvalidAddress("Invalid address. Must be a valid EVM address.")
            return cleaned.lower()
        # base58 encodings are case-sensitive and must not be lowercased
        if not _BASE58_ADDRESS_RE.match(cleaned):
            raise InvalidAddress("Invalid address. Must be a valid base58 address.")
        return cleaned

    @staticmethod
    def normalize(chain: str, address: str) -> str:
        """Return the canonical form of a token address on ``chain``.

        Args:
            chain: One of the supported chain identifiers.
            address: Raw address as supplied by the caller.

        Raises:
            InvalidAddress: If the chain is unknown or the address does not
                match the chain's grammar.
        """
        return AddressCodec.normalize_family(AddressCodec.family(chain), address)

    @staticmethod
    def normalize_wallet(wallet: str) -> str:
        """Return the canonical form of a wallet address of either family."""
        return AddressCodec.normalize_family(AddressCodec.wallet_family(wallet), wallet)

    @staticmethod
    def is_valid_wallet(wallet: str) -> bool:
        """Return True if ``wallet`` is a well-formed address of either family."""
        try:
            AddressCodec.normalize_wallet(wallet)
        except InvalidAddress:
            return False
        return True

    @staticmethod
    def wallet_key(wallet: str) -> str:
        """Return the storage key for a wallet.

        The key is the BLAKE3 digest of the normalized wallet, so case
        variants of one EVM wallet share a key while the plaintext address
        never reaches storage.
        """
        normalized = AddressCodec.normalize_wallet(wallet)
        return blake3.blake3(normalized.encode("utf-8")).hexdigest()

    @staticmethod
    def is_wallet_key(value: str) -> bool:
        """Return True if ``value`` has the shape of a wallet key."""
        return bool(_WALLET_KEY_RE.match(value))
