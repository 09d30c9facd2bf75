"""Workspace Provisioning — create workspace + enrol owner + grant role + log activity, atomically.

Invariants:
    - All four writes share ONE transaction: any failure leaves none of them
    - The owner membership always carries role "owner"
    - (party, role) RoleGrant is upserted: re-granting updates workspace_id in place
    - The ActivityRecord is part of the transaction, not a dispatched side effect

Design Decisions:
    - Upsert via the dialect's INSERT ... ON CONFLICT DO UPDATE (PostgreSQL and
      SQLite share the syntax), so two concurrent provisions for the same owner
      and role cannot race into a unique violation
    - Activity text rendered by core/side_effects.render_activity, same as every
      dispatched event
"""

import logging
import uuid
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.domain_types import (
    EntityKind, MemberRole, RoleType, WorkspaceType,
)
from marketcore.core.identity import Caller
from marketcore.core.provisioning import (
    DEFAULT_ICON, role_for, validate_workspace_name,
)
from marketcore.core.side_effects import TransitionEvent, render_activity
from marketcore.db.base import utcnow
from marketcore.infrastructure.database import run_bounded, transaction
from marketcore.models.activity_record import ActivityRecord
from marketcore.models.role_grant import RoleGrant
from marketcore.models.workspace import Workspace, WorkspaceMembership
from marketcore.services.party_directory import get_party

logger = logging.getLogger(__name__)

WORKSPACE_CREATED = "created"


@dataclass(frozen=True)
class ProvisionedWorkspace:
    workspace: Workspace
    granted_role: RoleType


class WorkspaceProvisioning:
    """Creates workspaces and the role grants that follow from them."""

    def __init__(self, db: AsyncSession, timeout_seconds: float = 10.0):
        self.db = db
        self.timeout_seconds = timeout_seconds

    async def create_workspace(
        self, caller: Caller, name: str, workspace_type: WorkspaceType,
        description: str | None = None, icon: str | None = None,
    ) -> ProvisionedWorkspace:
        name = validate_workspace_name(name)
        return await run_bounded(
            self._provision(caller.party_id, name, workspace_type, description, icon),
            self.timeout_seconds, "create_workspace",
        )

    async def _provision(
        self, owner_id: UUID, name: str, workspace_type: WorkspaceType,
        description: str | None, icon: str | None,
    ) -> ProvisionedWorkspace:
        role = role_for(workspace_type)
        async with transaction(self.db, "create_workspace"):
            owner = await get_party(self.db, owner_id, "create_workspace")
            workspace = Workspace(
                name=name,
                type=workspace_type.value,
                owner_id=owner_id,
                description=description,
                icon=icon or DEFAULT_ICON,
                is_active=True,
            )
            workspace.memberships.append(
                WorkspaceMembership(party_id=owner_id, role=MemberRole.OWNER.value),
            )
            self.db.add(workspace)
            await self.db.flush()

            await self._upsert_role_grant(owner_id, role, workspace.id)
            self._record_activity(workspace, owner_id, owner.name)
            await self.db.flush()
        logger.info(
            "Workspace provisioned, granted %s", role.value,
            extra={"party_id": str(owner_id), "entity_id": str(workspace.id)},
        )
        return ProvisionedWorkspace(workspace, role)

    async def _upsert_role_grant(
        self, party_id: UUID, role: RoleType, workspace_id: UUID,
    ) -> None:
        dialect = self.db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        now = utcnow()
        stmt = insert(RoleGrant).values(
            id=uuid.uuid4(),
            party_id=party_id,
            role=role.value,
            workspace_id=workspace_id,
            granted_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RoleGrant.party_id, RoleGrant.role],
            set_={
                "workspace_id": stmt.excluded.workspace_id,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)

    def _record_activity(
        self, workspace: Workspace, owner_id: UUID, owner_name: str,
    ) -> None:
        draft = render_activity(TransitionEvent(
            entity_kind=EntityKind.WORKSPACE,
            entity_id=workspace.id,
            old_state=None,
            new_state=WORKSPACE_CREATED,
            actor_id=owner_id,
            actor_name=owner_name,
            counterpart_id=None,
            subject=workspace.name,
        ))
        self.db.add(ActivityRecord(
            party_id=draft.party_id,
            type=draft.type.value,
            title=draft.title,
            description=draft.description,
            reference_id=draft.reference_id,
            reference_type=draft.reference_type.value,
        ))

    # ─── Queries ────────────────────────────────────────────────

    async def list_workspaces(self, party_id: UUID) -> list[Workspace]:
        """Workspaces the party owns or belongs to, newest first."""
        query = (
            select(Workspace)
            .join(WorkspaceMembership, WorkspaceMembership.workspace_id == Workspace.id)
            .where(WorkspaceMembership.party_id == party_id)
            .order_by(Workspace.created_at.desc())
        )
        result = await run_bounded(
            self.db.execute(query), self.timeout_seconds, "list_workspaces",
        )
        return list(result.unique().scalars().all())

    async def list_role_grants(self, party_id: UUID) -> list[RoleGrant]:
        result = await run_bounded(
            self.db.execute(
                select(RoleGrant)
                .where(RoleGrant.party_id == party_id)
                .order_by(RoleGrant.granted_at),
            ),
            self.timeout_seconds, "list_role_grants",
        )
        return list(result.scalars().all())
