"""Identity & Permission Gate — the caller contract consumed by every service.

Invariants:
    - Capabilities are opaque booleans supplied by the upstream gateway
    - The core never computes capabilities from roles or memberships
    - require() raises ForbiddenError, never returns False

Design Decisions:
    - Frozen dataclass: a Caller is resolved once per request and never mutated
    - Capability as str Enum: header values parse directly into members
"""

from dataclasses import dataclass, field
from enum import Enum

from marketcore.core.domain_types import PartyId
from marketcore.core.errors import ErrorContext, ForbiddenError


class Capability(str, Enum):
    """Capability flags the permission gate may grant."""
    CREATE_STUDIOS = "can_create_studios"
    BOOK_STUDIOS = "can_book_studios"
    REQUEST_PRODUCER_SERVICE = "can_request_producer_service"
    ACCEPT_JOBS = "can_accept_jobs"
    CREATE_BIDS = "can_create_bids"
    CREATE_COLLABS = "can_create_collabs"
    PLACE_BIDS = "can_place_bids"
    ACCEPT_BIDS = "can_accept_bids"
    UPLOAD_BEATS = "can_upload_beats"
    IS_PRODUCER = "is_producer"


@dataclass(frozen=True)
class Caller:
    """Authenticated party plus the capability set resolved for this request."""
    party_id: PartyId
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability, operation: str) -> None:
        """Raise ForbiddenError unless the caller holds `capability`."""
        if capability not in self.capabilities:
            raise ForbiddenError(
                f"Missing capability '{capability.value}' for {operation}",
                ErrorContext(party_id=str(self.party_id), operation=operation),
            )


def parse_capabilities(raw: str | None) -> frozenset[Capability]:
    """Parse a comma-separated capability header. Unknown flags are ignored."""
    if not raw:
        return frozenset()
    known = {c.value: c for c in Capability}
    return frozenset(
        known[token.strip()]
        for token in raw.split(",")
        if token.strip() in known
    )
