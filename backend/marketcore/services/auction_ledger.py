"""Auction Ledger — listings, bid placement, and bid resolution.

Invariants:
    - Bid placement runs under the listing row lock: the high bid it validates
      against is the high bid it overwrites (no stale reads, no lost updates)
    - current_high_bid never decreases (next_high_bid / high_bid_after_acceptance)
    - At most one pending bid per (listing, bidder); the partial unique index
      uq_bids_one_pending backs the in-lock check
    - Only the listing creator resolves bids; accepting one closes the listing
      and rejects every other pending bid
    - A bid arriving after expires_at marks the listing expired (committed) and
      is rejected with ListingInactiveError

Design Decisions:
    - Rule evaluation delegated to core/auction.validate_bid over a
      ListingSnapshot built inside the lock
    - The loser of a same-amount race sees BidTooLow/IncrementTooSmall because
      it validates after the winner's write, never a driver error
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.auction import (
    ListingSnapshot, expiry_due, high_bid_after_acceptance, next_high_bid,
    normalize_amount, validate_bid,
)
from marketcore.core.domain_types import (
    BidStatus, EntityKind, ListingMode, ListingStatus,
)
from marketcore.core.errors import (
    DuplicatePendingBidError, ErrorContext, ForbiddenError,
    InputValidationError, InvalidTransitionError, ListingInactiveError,
    NotFoundError,
)
from marketcore.core.identity import Caller, Capability
from marketcore.core.scheduling import CENTS, ensure_utc
from marketcore.core.side_effects import TransitionEvent
from marketcore.db.base import utcnow
from marketcore.infrastructure.database import (
    acquire_row_lock, run_bounded, transaction,
)
from marketcore.models.auction_listing import AuctionListing
from marketcore.models.bid import ONE_PENDING_INDEX, Bid
from marketcore.services.party_directory import display_name, get_party
from marketcore.services.side_effect_dispatcher import (
    OperationOutcome, SideEffectDispatcher, dispatch_all,
)

logger = logging.getLogger(__name__)

_CREATE_CAPABILITY = {
    ListingMode.BID: Capability.CREATE_BIDS,
    ListingMode.REQUEST: Capability.CREATE_COLLABS,
}


def snapshot(listing: AuctionListing) -> ListingSnapshot:
    return ListingSnapshot(
        listing_id=str(listing.id),
        creator_id=listing.creator_id,
        mode=ListingMode(listing.mode),
        status=ListingStatus(listing.status),
        minimum_bid=listing.minimum_bid,
        current_high_bid=listing.current_high_bid,
        expires_at=listing.expires_at,
    )


class AuctionLedger:
    """Listing and bid bookkeeping with monotonic high bids."""

    def __init__(
        self, db: AsyncSession,
        dispatcher: SideEffectDispatcher | None = None,
        timeout_seconds: float = 10.0,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.timeout_seconds = timeout_seconds

    # ─── Listings ───────────────────────────────────────────────

    async def create_listing(
        self, caller: Caller, title: str, mode: ListingMode,
        minimum_bid: Decimal | None = None,
        expires_at: datetime | None = None,
        description: str | None = None,
    ) -> OperationOutcome[AuctionListing]:
        caller.require(_CREATE_CAPABILITY[mode], "create_listing")
        title = title.strip()
        if not title:
            raise InputValidationError("Listing title cannot be empty", "title")
        minimum = minimum_bid if minimum_bid is not None else Decimal(0)
        if minimum < 0:
            raise InputValidationError("minimum_bid cannot be negative", "minimum_bid")
        if expires_at is not None:
            expires_at = ensure_utc(expires_at, "expires_at")
            if expires_at <= datetime.now(timezone.utc):
                raise InputValidationError(
                    "expires_at must be in the future", "expires_at",
                )
        listing = await run_bounded(
            self._insert_listing(
                caller.party_id, title, mode, minimum.quantize(CENTS),
                expires_at, description,
            ),
            self.timeout_seconds, "create_listing",
        )
        event = TransitionEvent(
            entity_kind=EntityKind.LISTING,
            entity_id=listing.id,
            old_state=None,
            new_state=listing.status,
            actor_id=caller.party_id,
            actor_name=await display_name(self.db, caller.party_id),
            counterpart_id=None,
            subject=listing.title,
        )
        warnings = await dispatch_all(self.dispatcher, [event])
        return OperationOutcome(listing, warnings)

    async def _insert_listing(
        self, creator_id: UUID, title: str, mode: ListingMode,
        minimum: Decimal, expires_at: datetime | None, description: str | None,
    ) -> AuctionListing:
        async with transaction(self.db, "create_listing"):
            await get_party(self.db, creator_id, "create_listing")
            listing = AuctionListing(
                creator_id=creator_id,
                title=title,
                description=description,
                mode=mode.value,
                minimum_bid=minimum,
                current_high_bid=Decimal(0),
                status=ListingStatus.ACTIVE.value,
                expires_at=expires_at,
            )
            self.db.add(listing)
            await self.db.flush()
        logger.info(
            "Listing created",
            extra={"party_id": str(creator_id), "entity_id": str(listing.id)},
        )
        return listing

    async def get_listing(self, listing_id: UUID) -> AuctionListing:
        listing = await self.db.get(AuctionListing, listing_id)
        if listing is None:
            raise NotFoundError(
                "Listing", str(listing_id),
                ErrorContext(entity_id=str(listing_id), operation="get_listing"),
            )
        return listing

    async def close_listing(
        self, listing_id: UUID, caller: Caller,
    ) -> OperationOutcome[AuctionListing]:
        """Creator closes an active listing; its pending bids are rejected."""
        listing = await run_bounded(
            self._close(listing_id, caller),
            self.timeout_seconds, "close_listing",
        )
        event = TransitionEvent(
            entity_kind=EntityKind.LISTING,
            entity_id=listing.id,
            old_state=ListingStatus.ACTIVE.value,
            new_state=listing.status,
            actor_id=caller.party_id,
            actor_name=await display_name(self.db, caller.party_id),
            counterpart_id=None,
            subject=listing.title,
        )
        warnings = await dispatch_all(self.dispatcher, [event])
        return OperationOutcome(listing, warnings)

    async def _close(self, listing_id: UUID, caller: Caller) -> AuctionListing:
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(listing_id),
            operation="close_listing",
        )
        async with transaction(self.db, "close_listing"):
            listing = await self._lock_listing(listing_id, ctx)
            if listing.creator_id != caller.party_id:
                raise ForbiddenError("Only the listing creator may close it", ctx)
            if listing.status != ListingStatus.ACTIVE.value:
                raise InvalidTransitionError("listing", listing.status, "close", ctx)
            listing.status = ListingStatus.CLOSED.value
            await self._reject_pending(listing_id)
        return listing

    async def _lock_listing(
        self, listing_id: UUID, ctx: ErrorContext,
    ) -> AuctionListing:
        if not await acquire_row_lock(self.db, AuctionListing, listing_id):
            raise NotFoundError("Listing", str(listing_id), ctx)
        result = await self.db.execute(
            select(AuctionListing)
            .where(AuctionListing.id == listing_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one()

    async def _reject_pending(
        self, listing_id: UUID, except_bid: UUID | None = None,
    ) -> list[tuple[UUID, UUID]]:
        """Reject pending bids on a listing. Returns (bid_id, bidder_id) pairs."""
        conditions = [
            Bid.listing_id == listing_id,
            Bid.status == BidStatus.PENDING.value,
        ]
        if except_bid is not None:
            conditions.append(Bid.id != except_bid)
        result = await self.db.execute(
            select(Bid.id, Bid.bidder_id).where(*conditions),
        )
        rejected = [(row.id, row.bidder_id) for row in result]
        await self.db.execute(
            update(Bid)
            .where(*conditions)
            .values(status=BidStatus.REJECTED.value, resolved_at=utcnow())
            .execution_options(synchronize_session=False),
        )
        return rejected

    # ─── Bids ───────────────────────────────────────────────────

    async def place_bid(
        self, caller: Caller, listing_id: UUID,
        amount: Decimal | None = None, message: str | None = None,
    ) -> OperationOutcome[Bid]:
        """Place a bid (or a Request-mode ask) on an active listing."""
        caller.require(Capability.PLACE_BIDS, "place_bid")
        bid, listing = await run_bounded(
            self._place(caller.party_id, listing_id, amount, message),
            self.timeout_seconds, "place_bid",
        )
        event = TransitionEvent(
            entity_kind=EntityKind.BID,
            entity_id=bid.id,
            old_state=None,
            new_state=bid.status,
            actor_id=caller.party_id,
            actor_name=await display_name(self.db, caller.party_id),
            counterpart_id=listing.creator_id,
            subject=listing.title,
            amount=bid.amount if listing.mode == ListingMode.BID.value else None,
        )
        warnings = await dispatch_all(self.dispatcher, [event])
        return OperationOutcome(bid, warnings)

    async def _place(
        self, bidder_id: UUID, listing_id: UUID,
        amount: Decimal | None, message: str | None,
    ) -> tuple[Bid, AuctionListing]:
        ctx = ErrorContext(
            party_id=str(bidder_id), entity_id=str(listing_id),
            operation="place_bid",
        )
        now = datetime.now(timezone.utc)
        async with transaction(self.db, "place_bid"):
            # First write of the transaction: concurrent bids queue here
            listing = await self._lock_listing(listing_id, ctx)
            current = snapshot(listing)
            expired = expiry_due(current, now)
            if expired:
                listing.status = ListingStatus.EXPIRED.value
            else:
                bid = await self._insert_bid(
                    listing, current, bidder_id, amount, message, now, ctx,
                )
        if expired:
            # Committed above so the listing stays expired after this rejection
            logger.info(
                "Listing expired", extra={"entity_id": str(listing_id)},
            )
            raise ListingInactiveError(str(listing_id), ctx)
        logger.info(
            "Bid placed",
            extra={"party_id": str(bidder_id), "entity_id": str(bid.id)},
        )
        return bid, listing

    async def _insert_bid(
        self, listing: AuctionListing, current: ListingSnapshot,
        bidder_id: UUID, amount: Decimal | None, message: str | None,
        now: datetime, ctx: ErrorContext,
    ) -> Bid:
        amount = normalize_amount(current.mode, amount)
        has_pending = await self._has_pending_bid(listing.id, bidder_id)
        validate_bid(current, bidder_id, amount, has_pending, now)

        bid = Bid(
            listing_id=listing.id,
            bidder_id=bidder_id,
            amount=amount,
            message=message,
            status=BidStatus.PENDING.value,
        )
        self.db.add(bid)
        listing.current_high_bid = next_high_bid(current, amount)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if ONE_PENDING_INDEX in str(e.orig) or "bids.listing_id" in str(e.orig):
                raise DuplicatePendingBidError(ctx) from e
            raise
        return bid

    async def _has_pending_bid(self, listing_id: UUID, bidder_id: UUID) -> bool:
        result = await self.db.execute(
            select(Bid.id).where(
                Bid.listing_id == listing_id,
                Bid.bidder_id == bidder_id,
                Bid.status == BidStatus.PENDING.value,
            ).limit(1),
        )
        return result.first() is not None

    async def list_bids(self, listing_id: UUID, caller: Caller) -> list[Bid]:
        """Creator sees every bid, highest first; anyone else sees their own, newest first."""
        listing = await self.get_listing(listing_id)
        query = select(Bid).where(Bid.listing_id == listing_id)
        if listing.creator_id == caller.party_id:
            query = query.order_by(Bid.amount.desc(), Bid.created_at.asc())
        else:
            query = query.where(Bid.bidder_id == caller.party_id).order_by(
                Bid.created_at.desc(),
            )
        result = await run_bounded(
            self.db.execute(query), self.timeout_seconds, "list_bids",
        )
        return list(result.scalars().all())

    async def resolve_bid(
        self, bid_id: UUID, caller: Caller, accept: bool,
    ) -> OperationOutcome[Bid]:
        """Creator accepts or rejects one pending bid."""
        bid, listing, rejected = await run_bounded(
            self._resolve(bid_id, caller, accept),
            self.timeout_seconds, "resolve_bid",
        )
        actor_name = await display_name(self.db, caller.party_id)
        events = [TransitionEvent(
            entity_kind=EntityKind.BID,
            entity_id=bid.id,
            old_state=BidStatus.PENDING.value,
            new_state=bid.status,
            actor_id=caller.party_id,
            actor_name=actor_name,
            counterpart_id=bid.bidder_id,
            subject=listing.title,
            amount=bid.amount,
        )]
        for rejected_id, bidder_id in rejected:
            events.append(TransitionEvent(
                entity_kind=EntityKind.BID,
                entity_id=rejected_id,
                old_state=BidStatus.PENDING.value,
                new_state=BidStatus.REJECTED.value,
                actor_id=caller.party_id,
                actor_name=actor_name,
                counterpart_id=bidder_id,
                subject=listing.title,
            ))
        warnings = await dispatch_all(self.dispatcher, events)
        return OperationOutcome(bid, warnings)

    async def _resolve(
        self, bid_id: UUID, caller: Caller, accept: bool,
    ) -> tuple[Bid, AuctionListing, list[tuple[UUID, UUID]]]:
        action = "accept" if accept else "reject"
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(bid_id),
            operation=f"bid.{action}",
        )
        found = await self.db.get(Bid, bid_id)
        if found is None:
            raise NotFoundError("Bid", str(bid_id), ctx)
        listing_id = found.listing_id

        async with transaction(self.db, "resolve_bid"):
            listing = await self._lock_listing(listing_id, ctx)
            if listing.creator_id != caller.party_id:
                raise ForbiddenError("Only the listing creator may resolve bids", ctx)
            if accept:
                caller.require(Capability.ACCEPT_BIDS, "resolve_bid")
            result = await self.db.execute(
                select(Bid)
                .where(Bid.id == bid_id)
                .execution_options(populate_existing=True),
            )
            bid = result.scalar_one()
            if bid.status != BidStatus.PENDING.value:
                raise InvalidTransitionError("bid", bid.status, action, ctx)

            bid.resolved_at = utcnow()
            rejected: list[tuple[UUID, UUID]] = []
            if accept:
                bid.status = BidStatus.ACCEPTED.value
                listing.current_high_bid = high_bid_after_acceptance(
                    listing.current_high_bid, bid.amount,
                )
                listing.status = ListingStatus.CLOSED.value
                rejected = await self._reject_pending(listing_id, except_bid=bid.id)
            else:
                bid.status = BidStatus.REJECTED.value
        logger.info(
            "Bid %s", bid.status,
            extra={"party_id": str(caller.party_id), "entity_id": str(bid_id)},
        )
        return bid, listing, rejected
