"""Reservation Schemas — resources, bookings, availability.

Invariants:
    - Money fields are Decimal end to end (never float)
    - start/end must carry a timezone; naive values are rejected by the scheduler
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from marketcore.schemas.common import UtcDatetime, WarningResponse


class ResourceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    hourly_rate: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class ResourceRateUpdate(BaseModel):
    hourly_rate: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class ResourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    name: str
    hourly_rate: Decimal
    is_active: bool


class ReservationCreate(BaseModel):
    resource_id: UUID
    start: datetime
    end: datetime
    note: str | None = Field(None, max_length=2000)


class ReservationTransition(BaseModel):
    action: Literal["confirm", "cancel", "complete"]


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    resource_id: UUID
    requester_id: UUID
    start_at: UtcDatetime
    end_at: UtcDatetime
    total_amount: Decimal
    status: str
    note: str | None = None


class ReservationOutcome(BaseModel):
    reservation: ReservationResponse
    warnings: list[WarningResponse] = []


class AvailabilityResponse(BaseModel):
    resource_id: UUID
    start: datetime
    end: datetime
    available: bool
