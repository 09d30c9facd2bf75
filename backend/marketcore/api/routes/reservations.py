"""Reservation Routes — resources, availability, bookings, and reservation transitions."""

from datetime import datetime
from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.api.deps import CallerDep, DispatcherDep, TimeoutDep
from marketcore.core.domain_types import ReservationStatus
from marketcore.core.identity import Caller
from marketcore.infrastructure.database import get_db
from marketcore.schemas.reservation import (
    AvailabilityResponse, ReservationCreate, ReservationOutcome,
    ReservationResponse, ReservationTransition, ResourceCreate,
    ResourceRateUpdate, ResourceResponse,
)
from marketcore.services.reservation_scheduler import ReservationScheduler
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher

router = APIRouter(prefix="/api/v1", tags=["reservations"])


def _scheduler(
    db: AsyncSession = Depends(get_db),
    dispatcher: SideEffectDispatcher = DispatcherDep,
    timeout: float = TimeoutDep,
) -> ReservationScheduler:
    return ReservationScheduler(db, dispatcher, timeout)


def _outcome(outcome) -> ReservationOutcome:
    return ReservationOutcome(
        reservation=ReservationResponse.model_validate(outcome.value),
        warnings=[asdict(w) for w in outcome.warnings],
    )


@router.post(
    "/resources", response_model=ResourceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_resource(
    body: ResourceCreate,
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    return await scheduler.create_resource(caller, body.name, body.hourly_rate)


@router.patch("/resources/{resource_id}/rate", response_model=ResourceResponse)
async def update_resource_rate(
    resource_id: UUID, body: ResourceRateUpdate,
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    return await scheduler.update_resource_rate(resource_id, caller, body.hourly_rate)


@router.post("/resources/{resource_id}/deactivate", response_model=ResourceResponse)
async def deactivate_resource(
    resource_id: UUID,
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    return await scheduler.deactivate_resource(resource_id, caller)


@router.get(
    "/resources/{resource_id}/availability", response_model=AvailabilityResponse,
)
async def check_availability(
    resource_id: UUID,
    start: datetime = Query(...),
    end: datetime = Query(...),
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    available = await scheduler.check_availability(resource_id, start, end)
    return AvailabilityResponse(
        resource_id=resource_id, start=start, end=end, available=available,
    )


@router.post(
    "/reservations", response_model=ReservationOutcome,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    body: ReservationCreate,
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    outcome = await scheduler.create_reservation(
        caller, body.resource_id, body.start, body.end, body.note,
    )
    return _outcome(outcome)


@router.get("/reservations", response_model=list[ReservationResponse])
async def list_reservations(
    as_owner: bool = Query(False),
    status_filter: ReservationStatus | None = Query(None, alias="status"),
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    """The caller's bookings, or bookings on resources they own (?as_owner=true)."""
    return await scheduler.list_reservations(caller, as_owner, status_filter)


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: UUID,
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    return await scheduler.get_reservation(reservation_id, caller)


@router.post(
    "/reservations/{reservation_id}/transitions",
    response_model=ReservationOutcome,
)
async def transition_reservation(
    reservation_id: UUID, body: ReservationTransition,
    caller: Caller = CallerDep,
    scheduler: ReservationScheduler = Depends(_scheduler),
):
    outcome = await scheduler.transition_reservation(
        reservation_id, caller, body.action,
    )
    return _outcome(outcome)
