"""Reservation ORM — a time-bound claim on a Resource.

Invariants:
    - end_at > start_at (check constraint)
    - total_amount captured at creation from the resource's rate, never recomputed
    - No two pending/confirmed reservations on one resource overlap: enforced by
      the scheduler under a resource row lock, and on PostgreSQL additionally by
      the ex_reservations_no_overlap exclusion constraint (see alembic 001)

Design Decisions:
    - status stored as the ReservationStatus value (String), not a DB enum:
      adding a state needs no migration of the type
    - (resource_id, status) index: the availability query filters on both
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Numeric, DateTime, ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from marketcore.core.domain_types import ReservationStatus
from marketcore.db.base import Base, utcnow

NO_OVERLAP_CONSTRAINT = "ex_reservations_no_overlap"


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="end_after_start"),
        Index("ix_reservations_resource_status", "resource_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False,
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReservationStatus.PENDING.value,
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    resource: Mapped["Resource"] = relationship("Resource", lazy="joined")
