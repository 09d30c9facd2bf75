"""Resource ORM — a bookable asset (studio) with an hourly rate and an owner.

Invariants:
    - hourly_rate > 0 (check constraint)
    - Soft-deactivated via is_active; never hard-deleted while reservations reference it
    - lock_version is bumped by acquire_row_lock() to serialize bookings per resource

Design Decisions:
    - Owner loaded eagerly (joined): every booking path needs the owner id and name
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, Integer, Numeric, DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from marketcore.db.base import Base, utcnow


class Resource(Base):
    __tablename__ = "resources"
    __table_args__ = (
        CheckConstraint("hourly_rate > 0", name="hourly_rate_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    owner: Mapped["Party"] = relationship("Party", lazy="joined")
