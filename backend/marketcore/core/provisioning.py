"""Workspace Provisioning Rules — workspace type to granted role, input checks.

Invariants:
    - Every WorkspaceType maps to exactly one RoleType (table is total)
    - Workspace names are stripped and 1-100 chars

Design Decisions:
    - Fixed lookup table: the role a workspace grants is a product decision,
      not data, so it lives in code next to its test
"""

from marketcore.core.domain_types import RoleType, WorkspaceType
from marketcore.core.errors import InputValidationError


ROLE_FOR_WORKSPACE_TYPE: dict[WorkspaceType, RoleType] = {
    WorkspaceType.RECORDING: RoleType.ARTIST,
    WorkspaceType.PRODUCTION: RoleType.PRODUCER,
    WorkspaceType.RENTAL: RoleType.STUDIO_OWNER,
    WorkspaceType.CREATIVE: RoleType.LYRICIST,
    WorkspaceType.MANAGEMENT: RoleType.OTHER,
    WorkspaceType.DISTRIBUTION: RoleType.OTHER,
}

DEFAULT_ICON = "🎵"
MAX_NAME_LENGTH = 100


def role_for(workspace_type: WorkspaceType) -> RoleType:
    return ROLE_FOR_WORKSPACE_TYPE[workspace_type]


def validate_workspace_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise InputValidationError("Workspace name cannot be empty", "name")
    if len(name) > MAX_NAME_LENGTH:
        raise InputValidationError(
            f"Workspace name exceeds {MAX_NAME_LENGTH} characters", "name",
        )
    return name
