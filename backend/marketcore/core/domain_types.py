"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - PartyId wraps the UUID of whoever acts or is addressed in the pure core
    - Money is always Decimal, never float
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: persisted as their value in String columns and serialized to JSON
      without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID

# ─── Identity Types ──────────────────────────────────────────────

PartyId = NewType("PartyId", UUID)

# ─── Enums ───────────────────────────────────────────────────────

class ReservationStatus(str, Enum):
    """Reservation lifecycle — Completed and Cancelled are terminal."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Statuses that hold a slot on the resource calendar
LIVE_RESERVATION_STATUSES = frozenset({
    ReservationStatus.PENDING, ReservationStatus.CONFIRMED,
})

class CaseStatus(str, Enum):
    """NegotiationCase (service request) lifecycle."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class ListingMode(str, Enum):
    """Bid listings take monetary offers; Request listings take free-form asks."""
    BID = "bid"
    REQUEST = "request"

class ListingStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    EXPIRED = "expired"

class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

class TransactionKind(str, Enum):
    """What a recorded payment settles: a studio booking or a service request."""
    BOOKING = "booking"
    SERVICE = "service"

class WorkspaceType(str, Enum):
    """Workspace (club) type — determines the RoleType granted to its owner."""
    RECORDING = "recording"
    PRODUCTION = "production"
    RENTAL = "rental"
    CREATIVE = "creative"
    MANAGEMENT = "management"
    DISTRIBUTION = "distribution"

class RoleType(str, Enum):
    ARTIST = "artist"
    PRODUCER = "producer"
    STUDIO_OWNER = "studio_owner"
    LYRICIST = "lyricist"
    OTHER = "other"

class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

class ActorRole(str, Enum):
    """Role an acting party plays relative to one entity (not a global role)."""
    OWNER = "owner"              # resource owner
    REQUESTER = "requester"      # reservation requester
    PROVIDER = "provider"        # negotiation provider
    CLIENT = "client"            # negotiation client

class EntityKind(str, Enum):
    """Reference type attached to notifications and activity records."""
    RESERVATION = "reservation"
    NEGOTIATION_CASE = "negotiation_case"
    LISTING = "listing"
    BID = "bid"
    WORKSPACE = "workspace"
    TRANSACTION = "transaction"

class NotificationType(str, Enum):
    BOOKING_REQUESTED = "booking_requested"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    JOB_REQUEST = "job_request"
    JOB_ACCEPTED = "job_accepted"
    JOB_REJECTED = "job_rejected"
    JOB_UPDATED = "job_updated"
    BID_PLACED = "bid_placed"
    BID_ACCEPTED = "bid_accepted"
    BID_REJECTED = "bid_rejected"
    TRANSACTION_COMPLETED = "transaction_completed"

class ActivityType(str, Enum):
    RESERVATION = "reservation"
    NEGOTIATION = "negotiation"
    AUCTION = "auction"
    WORKSPACE_CREATED = "workspace_created"
    TRANSACTION = "transaction"
