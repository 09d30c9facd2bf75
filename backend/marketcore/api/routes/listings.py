"""Auction Routes — listings, bids, and bid resolution."""

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.api.deps import CallerDep, DispatcherDep, TimeoutDep
from marketcore.core.auction import minimum_acceptable
from marketcore.core.domain_types import ListingMode
from marketcore.core.identity import Caller
from marketcore.infrastructure.database import get_db
from marketcore.models.auction_listing import AuctionListing
from marketcore.schemas.auction import (
    BidCreate, BidOutcome, BidResolve, BidResponse, ListingCreate,
    ListingOutcome, ListingResponse,
)
from marketcore.services.auction_ledger import AuctionLedger, snapshot
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher

router = APIRouter(prefix="/api/v1", tags=["listings"])


def _ledger(
    db: AsyncSession = Depends(get_db),
    dispatcher: SideEffectDispatcher = DispatcherDep,
    timeout: float = TimeoutDep,
) -> AuctionLedger:
    return AuctionLedger(db, dispatcher, timeout)


def _listing_response(listing: AuctionListing) -> ListingResponse:
    response = ListingResponse.model_validate(listing)
    if listing.mode == ListingMode.BID.value:
        response.minimum_next_bid = minimum_acceptable(snapshot(listing))
    return response


def _bid_outcome(outcome) -> BidOutcome:
    return BidOutcome(
        bid=BidResponse.model_validate(outcome.value),
        warnings=[asdict(w) for w in outcome.warnings],
    )


@router.post(
    "/listings", response_model=ListingOutcome,
    status_code=status.HTTP_201_CREATED,
)
async def create_listing(
    body: ListingCreate,
    caller: Caller = CallerDep,
    ledger: AuctionLedger = Depends(_ledger),
):
    outcome = await ledger.create_listing(
        caller, body.title, ListingMode(body.mode), body.minimum_bid,
        body.expires_at, body.description,
    )
    return ListingOutcome(
        listing=_listing_response(outcome.value),
        warnings=[asdict(w) for w in outcome.warnings],
    )


@router.get("/listings/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: UUID, ledger: AuctionLedger = Depends(_ledger),
):
    return _listing_response(await ledger.get_listing(listing_id))


@router.post("/listings/{listing_id}/close", response_model=ListingOutcome)
async def close_listing(
    listing_id: UUID,
    caller: Caller = CallerDep,
    ledger: AuctionLedger = Depends(_ledger),
):
    outcome = await ledger.close_listing(listing_id, caller)
    return ListingOutcome(
        listing=_listing_response(outcome.value),
        warnings=[asdict(w) for w in outcome.warnings],
    )


@router.post(
    "/listings/{listing_id}/bids", response_model=BidOutcome,
    status_code=status.HTTP_201_CREATED,
)
async def place_bid(
    listing_id: UUID, body: BidCreate,
    caller: Caller = CallerDep,
    ledger: AuctionLedger = Depends(_ledger),
):
    outcome = await ledger.place_bid(caller, listing_id, body.amount, body.message)
    return _bid_outcome(outcome)


@router.get("/listings/{listing_id}/bids", response_model=list[BidResponse])
async def list_bids(
    listing_id: UUID,
    caller: Caller = CallerDep,
    ledger: AuctionLedger = Depends(_ledger),
):
    return await ledger.list_bids(listing_id, caller)


@router.post("/bids/{bid_id}/resolution", response_model=BidOutcome)
async def resolve_bid(
    bid_id: UUID, body: BidResolve,
    caller: Caller = CallerDep,
    ledger: AuctionLedger = Depends(_ledger),
):
    outcome = await ledger.resolve_bid(bid_id, caller, body.decision == "accept")
    return _bid_outcome(outcome)
