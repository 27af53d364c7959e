"""Read-side data access."""

from .token_repo import TokenRepository

__all__ = ["TokenRepository"]
