"""Auction Schemas — listings and bids.

Invariants:
    - BidCreate.amount optional: Request-mode listings take no amount
    - ListingResponse.minimum_next_bid is informational; the ledger re-checks under lock
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from marketcore.schemas.common import UtcDatetime, WarningResponse


class ListingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    mode: Literal["bid", "request"]
    minimum_bid: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    expires_at: datetime | None = None


class ListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    creator_id: UUID
    title: str
    description: str | None = None
    mode: str
    minimum_bid: Decimal
    current_high_bid: Decimal
    status: str
    expires_at: UtcDatetime | None = None
    minimum_next_bid: Decimal | None = None


class ListingOutcome(BaseModel):
    listing: ListingResponse
    warnings: list[WarningResponse] = []


class BidCreate(BaseModel):
    amount: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    message: str | None = Field(None, max_length=2000)


class BidResolve(BaseModel):
    decision: Literal["accept", "reject"]


class BidResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    listing_id: UUID
    bidder_id: UUID
    amount: Decimal
    message: str | None = None
    status: str
    created_at: UtcDatetime


class BidOutcome(BaseModel):
    bid: BidResponse
    warnings: list[WarningResponse] = []
