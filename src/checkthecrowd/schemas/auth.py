"""Authentication-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from checkthecrowd.services.address import AddressCodec
from checkthecrowd.services.nonce import IssuedNonce

SIGNATURE_PATTERN = r"^0x[0-9a-fA-F]+$"


def _validate_wallet(value: str) -> str:
    if not AddressCodec.is_valid_wallet(value):
        raise ValueError("Invalid wallet. Must be a valid EVM or base58 address.")
    return AddressCodec.normalize_wallet(value)


class NonceRequest(BaseModel):
    """Request for a fresh wallet challenge."""

    wallet: str = Field(..., description="Wallet that will sign the challenge")

    normalize_wallet = field_validator("wallet")(_validate_wallet)


class NonceResponse(BaseModel):
    """Challenge returned to the wallet."""

    wallet_hash: str = Field(..., serialization_alias="walletHash")
    nonce: str
    issued_at: datetime = Field(..., serialization_alias="issuedAt")
    expires_at: datetime = Field(..., serialization_alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_issued(cls, issued: IssuedNonce) -> "NonceResponse":
        return cls(
            wallet_hash=issued.wallet_key,
            nonce=issued.value,
            issued_at=issued.issued_at,
            expires_at=issued.expires_at,
        )


class SignedRequest(BaseModel):
    """Fields shared by every signed submission."""

    wallet: str
    signature: str = Field(..., min_length=10, max_length=4096, pattern=SIGNATURE_PATTERN)
    message: str = Field(..., min_length=1, max_length=500)
    nonce: str = Field(..., min_length=1, max_length=128)

    normalize_wallet = field_validator("wallet")(_validate_wallet)


class VerifyRequest(SignedRequest):
    """Signed login challenge submission."""


class SessionResponse(BaseModel):
    """State of the caller's session cookie."""

    authenticated: bool
    wallet: str | None = None
    expires_at: datetime | None = Field(None, serialization_alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)
