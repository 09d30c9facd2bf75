"""Workspace Routes — atomic provisioning and the caller's workspaces and role grants."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.api.deps import CallerDep, TimeoutDep
from marketcore.core.identity import Caller
from marketcore.infrastructure.database import get_db
from marketcore.schemas.workspace import (
    ProvisionResponse, RoleGrantResponse, WorkspaceCreate, WorkspaceResponse,
)
from marketcore.services.workspace_provisioning import WorkspaceProvisioning

router = APIRouter(prefix="/api/v1", tags=["workspaces"])


def _provisioning(
    db: AsyncSession = Depends(get_db), timeout: float = TimeoutDep,
) -> WorkspaceProvisioning:
    return WorkspaceProvisioning(db, timeout)


@router.post(
    "/workspaces", response_model=ProvisionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_workspace(
    body: WorkspaceCreate,
    caller: Caller = CallerDep,
    provisioning: WorkspaceProvisioning = Depends(_provisioning),
):
    result = await provisioning.create_workspace(
        caller, body.name, body.type, body.description, body.icon,
    )
    return ProvisionResponse(
        workspace=WorkspaceResponse.model_validate(result.workspace),
        granted_role=result.granted_role.value,
    )


@router.get("/workspaces", response_model=list[WorkspaceResponse])
async def list_workspaces(
    caller: Caller = CallerDep,
    provisioning: WorkspaceProvisioning = Depends(_provisioning),
):
    return await provisioning.list_workspaces(caller.party_id)


@router.get("/role-grants", response_model=list[RoleGrantResponse])
async def list_role_grants(
    caller: Caller = CallerDep,
    provisioning: WorkspaceProvisioning = Depends(_provisioning),
):
    return await provisioning.list_role_grants(caller.party_id)
