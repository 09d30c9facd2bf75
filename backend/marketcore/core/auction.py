"""Auction Rules — bid validation and high-bid bookkeeping for listings.

Invariants:
    - Check order: ListingInactive -> SelfBidForbidden -> DuplicatePendingBid ->
      BidTooLow -> IncrementTooSmall (first failing rule wins)
    - Bid mode: amount >= max(minimum_bid, current_high_bid)
    - Bid mode with current_high_bid > 0: amount >= current_high_bid + MIN_BID_INCREMENT
    - current_high_bid is non-decreasing; next_high_bid raises rather than lower it
    - Request mode ignores amount rules (amount may be zero)
    - An active listing past expires_at is recorded as expired on the next bid

Design Decisions:
    - current_high_bid starts at 0, not at minimum_bid: the first bid equal to the
      minimum is accepted and becomes the high bid
    - ListingSnapshot decouples rules from the ORM row: the shell builds it while
      holding the listing lock
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from marketcore.core.domain_types import ListingMode, ListingStatus, PartyId
from marketcore.core.errors import (
    BidTooLowError, DuplicatePendingBidError, ErrorContext,
    IncrementTooSmallError, InputValidationError, ListingInactiveError,
    SelfBidForbiddenError,
)
from marketcore.core.scheduling import CENTS, as_utc


MIN_BID_INCREMENT: Decimal = Decimal("10")


@dataclass(frozen=True)
class ListingSnapshot:
    """The listing fields bid validation depends on, read under lock."""
    listing_id: str
    creator_id: PartyId
    mode: ListingMode
    status: ListingStatus
    minimum_bid: Decimal
    current_high_bid: Decimal
    expires_at: datetime | None = None


def is_open(listing: ListingSnapshot, now: datetime) -> bool:
    if listing.status != ListingStatus.ACTIVE:
        return False
    expires_at = as_utc(listing.expires_at)
    return expires_at is None or now < expires_at


def expiry_due(listing: ListingSnapshot, now: datetime) -> bool:
    """True when an active listing has reached its expiry and should be marked expired."""
    expires_at = as_utc(listing.expires_at)
    return (
        listing.status == ListingStatus.ACTIVE
        and expires_at is not None
        and now >= expires_at
    )


def minimum_acceptable(listing: ListingSnapshot) -> Decimal:
    """Lowest amount a new Bid-mode bid may carry right now."""
    floor = max(listing.minimum_bid, listing.current_high_bid)
    if listing.current_high_bid > 0:
        floor = max(floor, listing.current_high_bid + MIN_BID_INCREMENT)
    return floor


def normalize_amount(mode: ListingMode, amount: Decimal | None) -> Decimal:
    if amount is None:
        amount = Decimal(0)
    if amount < 0:
        raise InputValidationError("amount cannot be negative", "amount")
    if mode == ListingMode.BID and amount <= 0:
        raise InputValidationError("Bid amount must be positive", "amount")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def validate_bid(
    listing: ListingSnapshot,
    bidder_id: PartyId,
    amount: Decimal,
    has_pending_bid: bool,
    now: datetime,
) -> None:
    """Raise the first rule violation for this bid. Pure."""
    ctx = ErrorContext(
        party_id=str(bidder_id), entity_id=listing.listing_id,
        operation="place_bid",
    )
    if not is_open(listing, now):
        raise ListingInactiveError(listing.listing_id, ctx)
    if bidder_id == listing.creator_id:
        raise SelfBidForbiddenError(ctx)
    if has_pending_bid:
        raise DuplicatePendingBidError(ctx)
    if listing.mode != ListingMode.BID:
        return

    floor = max(listing.minimum_bid, listing.current_high_bid)
    if amount < floor:
        raise BidTooLowError(floor, ctx)
    if (
        listing.current_high_bid > 0
        and amount < listing.current_high_bid + MIN_BID_INCREMENT
    ):
        raise IncrementTooSmallError(
            listing.current_high_bid + MIN_BID_INCREMENT, ctx,
        )


def next_high_bid(listing: ListingSnapshot, amount: Decimal) -> Decimal:
    """High bid after a successful placement: the latest Bid-mode amount."""
    if listing.mode != ListingMode.BID:
        return listing.current_high_bid
    if amount < listing.current_high_bid:
        raise ValueError(
            f"high bid would decrease from {listing.current_high_bid} to {amount}",
        )
    return amount


def high_bid_after_acceptance(current: Decimal, accepted: Decimal) -> Decimal:
    """Accepting a bid records its amount but never lowers the high bid."""
    return max(current, accepted)
