"""Negotiation Schemas — service requests between a client and a provider."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketcore.schemas.common import UtcDatetime, WarningResponse


class CaseCreate(BaseModel):
    provider_id: UUID
    project_title: str = Field(min_length=1, max_length=200)
    project_description: str | None = Field(None, max_length=5000)
    budget: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    deadline: datetime | None = None

    @field_validator("project_title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("project_title cannot be empty or whitespace")
        return v


class CaseTransition(BaseModel):
    action: Literal["accept", "reject", "start", "complete", "cancel"]
    response: str | None = Field(None, max_length=2000)


class CaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    provider_id: UUID
    project_title: str
    project_description: str
    budget: Decimal | None = None
    deadline: UtcDatetime | None = None
    status: str
    provider_response: str | None = None
    responded_at: UtcDatetime | None = None


class CaseOutcome(BaseModel):
    case: CaseResponse
    warnings: list[WarningResponse] = []
