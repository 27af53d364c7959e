# src/checkthecrowd/services/__init__.py
"""Protocol services for the CheckTheCrowd core."""

from .address import AddressCodec
from .consensus import aggregate
from .nonce import NonceLedger
from .protocol import WalletAuthProtocol
from .rate_limit import InMemoryRateLimiter, RedisRateLimiter
from .session import SessionIssuer
from .signature import SignatureVerifier
from .votes import VoteLedger

__all__ = [
    "AddressCodec",
    "aggregate",
    "NonceLedger",
    "WalletAuthProtocol",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "SessionIssuer",
    "SignatureVerifier",
    "VoteLedger",
]
