"""Transaction Schemas — recorded payments for bookings and service requests."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from marketcore.core.domain_types import TransactionKind
from marketcore.schemas.common import UtcDatetime, WarningResponse


class TransactionCreate(BaseModel):
    kind: TransactionKind
    reference_id: UUID
    amount: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    payment_method: str = Field("card", min_length=1, max_length=30)


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    buyer_id: UUID
    seller_id: UUID
    kind: str
    reference_id: UUID
    amount: Decimal
    payment_method: str
    created_at: UtcDatetime


class TransactionOutcome(BaseModel):
    transaction: TransactionResponse
    warnings: list[WarningResponse] = []
