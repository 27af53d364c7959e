# src/checkthecrowd/models/__init__.py
"""SQLAlchemy models for the CheckTheCrowd core."""

from .nonce import Nonce
from .token import Token
from .vote import VERIFICATION_METHODS, VOTE_CHOICES, Vote, VoteHistory

__all__ = [
    "Nonce",
    "Token",
    "Vote", "VoteHistory",
    "VOTE_CHOICES", "VERIFICATION_METHODS",
]
