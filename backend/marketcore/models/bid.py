"""Bid ORM — one offer by one bidder on one listing.

Invariants:
    - At most one pending bid per (listing, bidder): checked by the ledger under
      the listing lock and backed by the partial unique index uq_bids_one_pending
    - amount >= 0; Request-mode bids carry 0

Design Decisions:
    - Partial unique index declared for both sqlite and postgresql so the
      backstop is exercised in tests too
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Numeric, DateTime, ForeignKey, CheckConstraint, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from marketcore.core.domain_types import BidStatus
from marketcore.db.base import Base, utcnow

ONE_PENDING_INDEX = "uq_bids_one_pending"


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        Index(
            ONE_PENDING_INDEX, "listing_id", "bidder_id", unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auction_listings.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("parties.id"), nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BidStatus.PENDING.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
