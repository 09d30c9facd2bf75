"""AuctionListing ORM — a collaboration opportunity open to bids or requests.

Invariants:
    - current_high_bid starts at 0 and never decreases
    - minimum_bid >= 0, current_high_bid >= 0 (check constraints)
    - lock_version is bumped by acquire_row_lock() so bid placement is serialized
      per listing (read high bid, validate, write happens under the lock)
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Integer, Numeric, DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from marketcore.core.domain_types import ListingStatus
from marketcore.db.base import Base, utcnow


class AuctionListing(Base):
    __tablename__ = "auction_listings"
    __table_args__ = (
        CheckConstraint("minimum_bid >= 0", name="minimum_bid_non_negative"),
        CheckConstraint("current_high_bid >= 0", name="high_bid_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    minimum_bid: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal(0),
    )
    current_high_bid: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal(0),
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ListingStatus.ACTIVE.value,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    creator: Mapped["Party"] = relationship("Party", lazy="joined")
