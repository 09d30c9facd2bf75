"""Reservation Scheduler — resources, bookings, and reservation transitions.

Invariants:
    - No two pending/confirmed reservations on one resource overlap ([start, end))
    - Availability check and insert happen in ONE transaction that first locks
      the resource row (acquire_row_lock), so concurrent bookings serialize
    - total_amount uses the hourly rate read under that lock, computed once
    - On PostgreSQL the ex_reservations_no_overlap exclusion constraint backs the
      check; its violation surfaces as SlotConflictError, never as a driver error
    - Side effects dispatched only after commit

Design Decisions:
    - Reservation transitions go through RESERVATION_MACHINE; a caller who is
      neither owner nor requester is rejected before the table is consulted
    - Reservation rows are locked with FOR UPDATE OF reservations (the joined
      resource is an outer join, which PostgreSQL refuses to lock)
"""

import logging
from decimal import Decimal
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.domain_types import (
    EntityKind, LIVE_RESERVATION_STATUSES, ReservationStatus,
)
from marketcore.core.errors import (
    ErrorContext, ForbiddenError, InputValidationError, NotFoundError,
    ResourceInactiveError, SlotConflictError,
)
from marketcore.core.identity import Caller, Capability
from marketcore.core.scheduling import (
    compute_total_amount, find_conflict, validate_hourly_rate, validate_interval,
)
from marketcore.core.side_effects import TransitionEvent
from marketcore.core.transitions import RESERVATION_MACHINE, reservation_roles
from marketcore.infrastructure.database import (
    acquire_row_lock, run_bounded, transaction,
)
from marketcore.models.reservation import NO_OVERLAP_CONSTRAINT, Reservation
from marketcore.models.resource import Resource
from marketcore.services.party_directory import display_name, get_party
from marketcore.services.side_effect_dispatcher import (
    OperationOutcome, SideEffectDispatcher, dispatch_all,
)

logger = logging.getLogger(__name__)

_LIVE = [s.value for s in LIVE_RESERVATION_STATUSES]


class ReservationScheduler:
    """Books resources without double-booking and drives reservation lifecycles."""

    def __init__(
        self, db: AsyncSession,
        dispatcher: SideEffectDispatcher | None = None,
        timeout_seconds: float = 10.0,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.timeout_seconds = timeout_seconds

    # ─── Resources ──────────────────────────────────────────────

    async def create_resource(
        self, caller: Caller, name: str, hourly_rate: Decimal,
    ) -> Resource:
        caller.require(Capability.CREATE_STUDIOS, "create_resource")
        name = name.strip()
        if not name:
            raise InputValidationError("Resource name cannot be empty", "name")
        rate = validate_hourly_rate(hourly_rate)
        return await run_bounded(
            self._insert_resource(caller.party_id, name, rate),
            self.timeout_seconds, "create_resource",
        )

    async def _insert_resource(
        self, owner_id: UUID, name: str, rate: Decimal,
    ) -> Resource:
        async with transaction(self.db, "create_resource"):
            await get_party(self.db, owner_id, "create_resource")
            resource = Resource(owner_id=owner_id, name=name, hourly_rate=rate)
            self.db.add(resource)
            await self.db.flush()
        logger.info(
            "Resource created",
            extra={"party_id": str(owner_id), "entity_id": str(resource.id)},
        )
        return resource

    async def update_resource_rate(
        self, resource_id: UUID, caller: Caller, hourly_rate: Decimal,
    ) -> Resource:
        """Change the rate for future bookings. Existing reservations keep theirs."""
        rate = validate_hourly_rate(hourly_rate)
        return await run_bounded(
            self._mutate_resource(resource_id, caller, "update_resource_rate",
                                  hourly_rate=rate),
            self.timeout_seconds, "update_resource_rate",
        )

    async def deactivate_resource(
        self, resource_id: UUID, caller: Caller,
    ) -> Resource:
        return await run_bounded(
            self._mutate_resource(resource_id, caller, "deactivate_resource",
                                  is_active=False),
            self.timeout_seconds, "deactivate_resource",
        )

    async def _mutate_resource(
        self, resource_id: UUID, caller: Caller, operation: str, **changes,
    ) -> Resource:
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(resource_id),
            operation=operation,
        )
        async with transaction(self.db, operation):
            if not await acquire_row_lock(self.db, Resource, resource_id):
                raise NotFoundError("Resource", str(resource_id), ctx)
            resource = await self._load_resource(resource_id)
            if resource.owner_id != caller.party_id:
                raise ForbiddenError("Only the resource owner may change it", ctx)
            for attr, value in changes.items():
                setattr(resource, attr, value)
        return resource

    async def _load_resource(self, resource_id: UUID) -> Resource:
        result = await self.db.execute(
            select(Resource)
            .where(Resource.id == resource_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one()

    # ─── Availability & booking ─────────────────────────────────

    async def check_availability(
        self, resource_id: UUID, start: datetime, end: datetime,
    ) -> bool:
        """True iff no pending/confirmed reservation overlaps [start, end)."""
        start, end = validate_interval(start, end)
        return await run_bounded(
            self._check_availability(resource_id, start, end),
            self.timeout_seconds, "check_availability",
        )

    async def _check_availability(
        self, resource_id: UUID, start: datetime, end: datetime,
    ) -> bool:
        if await self.db.get(Resource, resource_id) is None:
            raise NotFoundError(
                "Resource", str(resource_id),
                ErrorContext(entity_id=str(resource_id), operation="check_availability"),
            )
        existing = await self._live_intervals(resource_id, start, end)
        return find_conflict(existing, start, end) is None

    async def _live_intervals(
        self, resource_id: UUID, start: datetime, end: datetime,
    ) -> list[tuple[datetime, datetime]]:
        """Live reservations whose interval may overlap [start, end)."""
        result = await self.db.execute(
            select(Reservation.start_at, Reservation.end_at).where(
                Reservation.resource_id == resource_id,
                Reservation.status.in_(_LIVE),
                Reservation.start_at < end,
                Reservation.end_at > start,
            ),
        )
        return [(row.start_at, row.end_at) for row in result]

    async def create_reservation(
        self, caller: Caller, resource_id: UUID,
        start: datetime, end: datetime, note: str | None = None,
    ) -> OperationOutcome[Reservation]:
        """Book [start, end) on a resource as a pending reservation."""
        caller.require(Capability.BOOK_STUDIOS, "create_reservation")
        start, end = validate_interval(start, end)
        reservation, resource = await run_bounded(
            self._book(caller.party_id, resource_id, start, end, note),
            self.timeout_seconds, "create_reservation",
        )
        event = TransitionEvent(
            entity_kind=EntityKind.RESERVATION,
            entity_id=reservation.id,
            old_state=None,
            new_state=reservation.status,
            actor_id=caller.party_id,
            actor_name=await display_name(self.db, caller.party_id),
            counterpart_id=resource.owner_id,
            subject=resource.name,
        )
        warnings = await dispatch_all(self.dispatcher, [event])
        return OperationOutcome(reservation, warnings)

    async def _book(
        self, requester_id: UUID, resource_id: UUID,
        start: datetime, end: datetime, note: str | None,
    ) -> tuple[Reservation, Resource]:
        ctx = ErrorContext(
            party_id=str(requester_id), entity_id=str(resource_id),
            operation="create_reservation",
        )
        async with transaction(self.db, "create_reservation"):
            # First write of the transaction: later bookings queue here
            if not await acquire_row_lock(self.db, Resource, resource_id):
                raise NotFoundError("Resource", str(resource_id), ctx)
            resource = await self._load_resource(resource_id)
            if not resource.is_active:
                raise ResourceInactiveError(str(resource_id), ctx)

            existing = await self._live_intervals(resource_id, start, end)
            if find_conflict(existing, start, end) is not None:
                raise SlotConflictError(str(resource_id), ctx)

            reservation = Reservation(
                resource_id=resource_id,
                requester_id=requester_id,
                start_at=start,
                end_at=end,
                total_amount=compute_total_amount(resource.hourly_rate, start, end),
                status=ReservationStatus.PENDING.value,
                note=note,
            )
            self.db.add(reservation)
            try:
                await self.db.flush()
            except IntegrityError as e:
                if NO_OVERLAP_CONSTRAINT in str(e.orig):
                    raise SlotConflictError(str(resource_id), ctx) from e
                raise
        logger.info(
            "Reservation created",
            extra={"party_id": str(requester_id), "entity_id": str(reservation.id)},
        )
        return reservation, resource

    # ─── Lifecycle ──────────────────────────────────────────────

    async def transition_reservation(
        self, reservation_id: UUID, caller: Caller, action: str,
    ) -> OperationOutcome[Reservation]:
        """Apply confirm / cancel / complete on behalf of the caller."""
        reservation, old_state = await run_bounded(
            self._transition(reservation_id, caller, action),
            self.timeout_seconds, "transition_reservation",
        )
        resource = reservation.resource
        counterpart = (
            reservation.requester_id
            if caller.party_id == resource.owner_id
            else resource.owner_id
        )
        event = TransitionEvent(
            entity_kind=EntityKind.RESERVATION,
            entity_id=reservation.id,
            old_state=old_state,
            new_state=reservation.status,
            actor_id=caller.party_id,
            actor_name=await display_name(self.db, caller.party_id),
            counterpart_id=counterpart,
            subject=resource.name,
        )
        warnings = await dispatch_all(self.dispatcher, [event])
        return OperationOutcome(reservation, warnings)

    async def _transition(
        self, reservation_id: UUID, caller: Caller, action: str,
    ) -> tuple[Reservation, str]:
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(reservation_id),
            operation=f"reservation.{action}",
        )
        async with transaction(self.db, "transition_reservation"):
            result = await self.db.execute(
                select(Reservation)
                .where(Reservation.id == reservation_id)
                .with_for_update(of=Reservation)
                .execution_options(populate_existing=True),
            )
            reservation = result.scalar_one_or_none()
            if reservation is None:
                raise NotFoundError("Reservation", str(reservation_id), ctx)
            roles = reservation_roles(
                caller.party_id, reservation.resource.owner_id,
                reservation.requester_id,
            )
            if not roles:
                raise ForbiddenError("Not a participant of this reservation", ctx)
            old_state = reservation.status
            new_state = RESERVATION_MACHINE.apply(
                ReservationStatus(old_state), action, roles, ctx,
            )
            reservation.status = new_state.value
        logger.info(
            "Reservation %s -> %s", old_state, reservation.status,
            extra={"party_id": str(caller.party_id), "entity_id": str(reservation_id)},
        )
        return reservation, old_state

    # ─── Queries ────────────────────────────────────────────────

    async def get_reservation(
        self, reservation_id: UUID, caller: Caller,
    ) -> Reservation:
        """Visible to the requester and the resource owner only."""
        reservation = await self.db.get(Reservation, reservation_id)
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(reservation_id),
            operation="get_reservation",
        )
        if reservation is None:
            raise NotFoundError("Reservation", str(reservation_id), ctx)
        if not reservation_roles(
            caller.party_id, reservation.resource.owner_id, reservation.requester_id,
        ):
            raise ForbiddenError("Not a participant of this reservation", ctx)
        return reservation

    async def list_reservations(
        self, caller: Caller, as_owner: bool = False,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]:
        """The caller's bookings, or bookings on resources they own. Latest start first."""
        query = select(Reservation)
        if as_owner:
            query = query.join(
                Resource, Reservation.resource_id == Resource.id,
            ).where(Resource.owner_id == caller.party_id)
        else:
            query = query.where(Reservation.requester_id == caller.party_id)
        if status is not None:
            query = query.where(Reservation.status == status.value)
        query = query.order_by(Reservation.start_at.desc())
        result = await run_bounded(
            self.db.execute(query), self.timeout_seconds, "list_reservations",
        )
        return list(result.unique().scalars().all())
