"""Token-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from checkthecrowd.core.errors import InvalidAddress
from checkthecrowd.repositories.token_repo import TokenConsensus
from checkthecrowd.services.address import AddressCodec

from .vote import ChainLiteral


class TokenRegister(BaseModel):
    """Explicit token registration."""

    chain: ChainLiteral
    address: str

    @model_validator(mode="after")
    def normalize_address(self) -> "TokenRegister":
        try:
            self.address = AddressCodec.normalize(self.chain, self.address)
        except InvalidAddress as err:
            raise ValueError(err.reason) from err
        return self


class ConsensusCounts(BaseModel):
    total: int
    appears_legit: int = Field(..., serialization_alias="appearsLegit")
    suspicious: int
    unclear: int
    label: str

    model_config = ConfigDict(populate_by_name=True)


class ConsensusResponse(BaseModel):
    """Consensus for one token."""

    exists: bool
    chain: str
    address: str
    consensus: ConsensusCounts

    @classmethod
    def from_consensus(cls, result: TokenConsensus) -> "ConsensusResponse":
        summary = result.summary
        return cls(
            exists=result.exists,
            chain=result.chain,
            address=result.address,
            consensus=ConsensusCounts(
                total=summary.total,
                appears_legit=summary.appears_legit,
                suspicious=summary.suspicious,
                unclear=summary.unclear,
                label=summary.label,
            ),
        )


class HotTokenItem(BaseModel):
    chain: str
    address: str
    created_at: datetime = Field(..., serialization_alias="createdAt")
    vote_count: int = Field(..., serialization_alias="voteCount")
    badge: str | None = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class HotTokenPageResponse(BaseModel):
    """One page of the hot token listing."""

    items: list[HotTokenItem]
    page: int
    page_size: int = Field(..., serialization_alias="pageSize")
    total_items: int = Field(..., serialization_alias="totalItems")
    total_pages: int = Field(..., serialization_alias="totalPages")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
