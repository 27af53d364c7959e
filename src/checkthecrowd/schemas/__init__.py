# src/checkthecrowd/schemas/__init__.py
"""
Pydantic schemas for request/response models.

These schemas enforce the boundary constraints applied before any
cryptographic work runs.
"""

from .auth import NonceRequest, NonceResponse, SessionResponse, VerifyRequest
from .token import ConsensusResponse, HotTokenPageResponse, TokenRegister
from .vote import VoteCreate, WalletVoteResponse

__all__ = [
    "NonceRequest", "NonceResponse", "SessionResponse", "VerifyRequest",
    "ConsensusResponse", "HotTokenPageResponse", "TokenRegister",
    "VoteCreate", "WalletVoteResponse",
]
