"""Party Directory — lookups of Party rows shared by every service.

Invariants:
    - get_party() raises NotFoundError, never returns None
    - display_name() never raises for a missing party (notification text only)
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.errors import ErrorContext, NotFoundError
from marketcore.models.party import Party

UNKNOWN_PARTY_NAME = "Someone"


async def get_party(
    db: AsyncSession, party_id: UUID, operation: str | None = None,
) -> Party:
    party = await db.get(Party, party_id)
    if party is None:
        raise NotFoundError(
            "Party", str(party_id),
            ErrorContext(entity_id=str(party_id), operation=operation),
        )
    return party


async def display_name(db: AsyncSession, party_id: UUID) -> str:
    party = await db.get(Party, party_id)
    return party.name if party else UNKNOWN_PARTY_NAME
