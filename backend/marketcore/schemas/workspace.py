"""Workspace Schemas — provisioning input and workspace / role grant output."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from marketcore.core.domain_types import WorkspaceType
from marketcore.schemas.common import UtcDatetime


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: WorkspaceType
    description: str | None = Field(None, max_length=2000)
    icon: str | None = Field(None, max_length=16)


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    party_id: UUID
    role: str


class WorkspaceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: str
    owner_id: UUID
    description: str | None = None
    icon: str
    created_at: UtcDatetime
    memberships: list[MembershipResponse] = []


class ProvisionResponse(BaseModel):
    workspace: WorkspaceResponse
    granted_role: str


class RoleGrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role: str
    workspace_id: UUID | None = None
    granted_at: UtcDatetime
    updated_at: UtcDatetime
