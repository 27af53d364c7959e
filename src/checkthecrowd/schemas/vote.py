"""Vote-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from checkthecrowd.core.errors import InvalidAddress
from checkthecrowd.services.address import AddressCodec

from .auth import SignedRequest

ChoiceLiteral = Literal["appears_legit", "suspicious", "unclear"]
ChainLiteral = Literal["eth", "bsc", "sol"]


class VoteCreate(SignedRequest):
    """Signed vote submission."""

    chain: ChainLiteral
    address: str
    choice: ChoiceLiteral = Field(..., description="appears_legit, suspicious or unclear")

    @model_validator(mode="after")
    def normalize_address(self) -> "VoteCreate":
        try:
            self.address = AddressCodec.normalize(self.chain, self.address)
        except InvalidAddress as err:
            raise ValueError(err.reason) from err
        return self


class WalletVoteResponse(BaseModel):
    """The caller's current vote on a token, if any."""

    choice: ChoiceLiteral
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
