"""Reservation Scheduler — booking, availability, lifecycle, and the concurrent race.

Tests:
    - Scenario: rate 50, 10:00-12:00 -> 100.00 pending; 11:00-13:00 conflicts;
      confirm -> complete; further transitions invalid
    - Back-to-back bookings allowed; cancelled bookings free the slot
    - Inactive / unknown resources, missing capability, naive datetimes
    - Rate changes never touch existing reservations
    - Only participants may view or transition a reservation
    - N concurrent bookings of one slot -> exactly one success
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from marketcore.core.domain_types import ReservationStatus
from marketcore.core.errors import (
    ForbiddenError, InputValidationError, InvalidTransitionError,
    NotFoundError, ResourceInactiveError, SlotConflictError,
)
from marketcore.core.identity import Capability
from marketcore.models.notification import Notification
from marketcore.models.party import Party
from marketcore.models.reservation import Reservation
from marketcore.services.reservation_scheduler import ReservationScheduler

DAY = datetime(2026, 6, 1, tzinfo=timezone.utc)


def at(hour: int) -> datetime:
    return DAY + timedelta(hours=hour)


@pytest.fixture
async def studio(test_db, parties, as_caller):
    scheduler = ReservationScheduler(test_db)
    return await scheduler.create_resource(
        as_caller(parties.owner), "Studio A", Decimal("50"),
    )


async def test_booking_scenario(test_db, dispatcher, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db, dispatcher)
    owner, requester = as_caller(parties.owner), as_caller(parties.requester)

    outcome = await scheduler.create_reservation(
        requester, studio.id, at(10), at(12), "vocals",
    )
    reservation = outcome.value
    assert reservation.total_amount == Decimal("100.00")
    assert reservation.status == ReservationStatus.PENDING.value
    assert outcome.warnings == []

    with pytest.raises(SlotConflictError) as exc:
        await scheduler.create_reservation(
            as_caller(parties.other), studio.id, at(11), at(13),
        )
    assert exc.value.code == "SLOT_CONFLICT"

    confirmed = await scheduler.transition_reservation(reservation.id, owner, "confirm")
    assert confirmed.value.status == "confirmed"
    completed = await scheduler.transition_reservation(reservation.id, owner, "complete")
    assert completed.value.status == "completed"

    for action in ("confirm", "cancel", "complete"):
        with pytest.raises(InvalidTransitionError):
            await scheduler.transition_reservation(reservation.id, owner, action)


async def test_booking_notifies_owner(
    test_db, test_session_factory, dispatcher, parties, studio, as_caller,
):
    scheduler = ReservationScheduler(test_db, dispatcher)
    await scheduler.create_reservation(
        as_caller(parties.requester), studio.id, at(10), at(12),
    )
    async with test_session_factory() as db:
        rows = (await db.execute(
            select(Notification).where(Notification.recipient_id == parties.owner),
        )).scalars().all()
    assert [n.type for n in rows] == ["booking_requested"]
    assert rows[0].message == "Requester requested to book Studio A"


async def test_back_to_back_bookings_allowed(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    await scheduler.create_reservation(as_caller(parties.requester), studio.id, at(10), at(12))
    await scheduler.create_reservation(as_caller(parties.other), studio.id, at(12), at(14))
    await scheduler.create_reservation(as_caller(parties.other), studio.id, at(8), at(10))
    assert not await scheduler.check_availability(studio.id, at(9), at(11))
    assert await scheduler.check_availability(studio.id, at(14), at(15))


async def test_cancelled_booking_frees_slot(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    requester = as_caller(parties.requester)
    first = (await scheduler.create_reservation(requester, studio.id, at(10), at(12))).value
    await scheduler.transition_reservation(first.id, requester, "cancel")
    assert await scheduler.check_availability(studio.id, at(10), at(12))
    second = await scheduler.create_reservation(
        as_caller(parties.other), studio.id, at(11), at(13),
    )
    assert second.value.status == "pending"


async def test_containment_conflicts(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    await scheduler.create_reservation(as_caller(parties.requester), studio.id, at(10), at(14))
    with pytest.raises(SlotConflictError):
        await scheduler.create_reservation(as_caller(parties.other), studio.id, at(11), at(12))
    with pytest.raises(SlotConflictError):
        await scheduler.create_reservation(as_caller(parties.other), studio.id, at(9), at(15))


async def test_invalid_interval_rejected(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    requester = as_caller(parties.requester)
    with pytest.raises(InputValidationError):
        await scheduler.create_reservation(requester, studio.id, at(12), at(12))
    with pytest.raises(InputValidationError):
        await scheduler.create_reservation(
            requester, studio.id, datetime(2026, 6, 1, 10), datetime(2026, 6, 1, 12),
        )


async def test_unknown_and_inactive_resource(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    requester = as_caller(parties.requester)
    with pytest.raises(NotFoundError):
        await scheduler.create_reservation(requester, uuid4(), at(10), at(12))

    await scheduler.deactivate_resource(studio.id, as_caller(parties.owner))
    with pytest.raises(ResourceInactiveError):
        await scheduler.create_reservation(requester, studio.id, at(10), at(12))


async def test_booking_requires_capability(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    with pytest.raises(ForbiddenError):
        await scheduler.create_reservation(
            as_caller(parties.requester, Capability.PLACE_BIDS),
            studio.id, at(10), at(12),
        )


async def test_creating_resource_requires_capability(test_db, parties, as_caller):
    scheduler = ReservationScheduler(test_db)
    with pytest.raises(ForbiddenError):
        await scheduler.create_resource(
            as_caller(parties.owner, Capability.BOOK_STUDIOS), "B", Decimal("10"),
        )


async def test_rate_change_keeps_existing_totals(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    first = (await scheduler.create_reservation(
        as_caller(parties.requester), studio.id, at(10), at(12),
    )).value
    updated = await scheduler.update_resource_rate(
        studio.id, as_caller(parties.owner), Decimal("80"),
    )
    assert updated.hourly_rate == Decimal("80.00")
    second = (await scheduler.create_reservation(
        as_caller(parties.other), studio.id, at(12), at(14),
    )).value
    assert second.total_amount == Decimal("160.00")

    stored = await scheduler.get_reservation(first.id, as_caller(parties.requester))
    assert stored.total_amount == Decimal("100.00")


async def test_only_owner_mutates_resource(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    with pytest.raises(ForbiddenError):
        await scheduler.update_resource_rate(
            studio.id, as_caller(parties.requester), Decimal("1"),
        )
    with pytest.raises(ForbiddenError):
        await scheduler.deactivate_resource(studio.id, as_caller(parties.requester))


async def test_requester_cannot_confirm(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    requester = as_caller(parties.requester)
    reservation = (await scheduler.create_reservation(
        requester, studio.id, at(10), at(12),
    )).value
    with pytest.raises(ForbiddenError):
        await scheduler.transition_reservation(reservation.id, requester, "confirm")


async def test_outsider_cannot_view_or_transition(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    reservation = (await scheduler.create_reservation(
        as_caller(parties.requester), studio.id, at(10), at(12),
    )).value
    outsider = as_caller(parties.outsider)
    with pytest.raises(ForbiddenError):
        await scheduler.get_reservation(reservation.id, outsider)
    # Forbidden even for a move the table does not define
    with pytest.raises(ForbiddenError):
        await scheduler.transition_reservation(reservation.id, outsider, "complete")


async def test_list_reservations(test_db, parties, studio, as_caller):
    scheduler = ReservationScheduler(test_db)
    requester = as_caller(parties.requester)
    early = (await scheduler.create_reservation(requester, studio.id, at(8), at(9))).value
    late = (await scheduler.create_reservation(requester, studio.id, at(15), at(16))).value
    await scheduler.create_reservation(as_caller(parties.other), studio.id, at(10), at(11))

    mine = await scheduler.list_reservations(requester)
    assert [r.id for r in mine] == [late.id, early.id]

    owned = await scheduler.list_reservations(as_caller(parties.owner), as_owner=True)
    assert len(owned) == 3

    await scheduler.transition_reservation(early.id, requester, "cancel")
    pending = await scheduler.list_reservations(
        requester, status=ReservationStatus.PENDING,
    )
    assert [r.id for r in pending] == [late.id]


async def test_concurrent_bookings_one_winner(race_session_factory, as_caller):
    """N sessions race for the same slot: one pending reservation, N-1 conflicts."""
    async with race_session_factory() as db:
        owner = Party(username="owner", display_name="Owner")
        bidders = [Party(username=f"guest{i}") for i in range(8)]
        db.add_all([owner, *bidders])
        await db.commit()
        studio = await ReservationScheduler(db).create_resource(
            as_caller(owner.id), "Race Room", Decimal("40"),
        )

    async def attempt(party_id):
        async with race_session_factory() as db:
            scheduler = ReservationScheduler(db, timeout_seconds=30.0)
            try:
                await scheduler.create_reservation(
                    as_caller(party_id), studio.id, at(10), at(12),
                )
                return "ok"
            except SlotConflictError:
                return "conflict"

    results = await asyncio.gather(*(attempt(p.id) for p in bidders))
    assert results.count("ok") == 1
    assert results.count("conflict") == len(bidders) - 1

    async with race_session_factory() as db:
        live = await db.scalar(
            select(func.count()).select_from(Reservation).where(
                Reservation.resource_id == studio.id,
            ),
        )
    assert live == 1
