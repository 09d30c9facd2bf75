"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Status columns store core/domain_types enum values

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from marketcore.models.party import Party  # noqa: F401
from marketcore.models.resource import Resource  # noqa: F401
from marketcore.models.reservation import Reservation  # noqa: F401
from marketcore.models.negotiation_case import NegotiationCase  # noqa: F401
from marketcore.models.auction_listing import AuctionListing  # noqa: F401
from marketcore.models.bid import Bid  # noqa: F401
from marketcore.models.workspace import Workspace, WorkspaceMembership  # noqa: F401
from marketcore.models.role_grant import RoleGrant  # noqa: F401
from marketcore.models.notification import Notification  # noqa: F401
from marketcore.models.activity_record import ActivityRecord  # noqa: F401
from marketcore.models.transaction_record import TransactionRecord  # noqa: F401
