"""Transaction Ledger — payments recorded against bookings and service requests.

Tests:
    - Booking payment defaults to the reservation total; seller is the resource owner
    - Recording a payment leaves the reservation and case status untouched
    - Only the paying side records; cancelled work cannot be paid for
    - Seller notified, buyer gets an activity record
    - Listing by buyer, seller, kind and reference
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from marketcore.core.domain_types import TransactionKind
from marketcore.core.errors import (
    ForbiddenError, InputValidationError, InvalidTransitionError, NotFoundError,
)
from marketcore.models.activity_record import ActivityRecord
from marketcore.models.notification import Notification
from marketcore.services.negotiation import NegotiationService
from marketcore.services.reservation_scheduler import ReservationScheduler
from marketcore.services.transaction_ledger import TransactionLedger

START = datetime(2026, 8, 3, 14, tzinfo=timezone.utc)


@pytest.fixture
def ledger(test_db, dispatcher):
    return TransactionLedger(test_db, dispatcher)


async def booking(test_db, parties, as_caller):
    scheduler = ReservationScheduler(test_db)
    studio = await scheduler.create_resource(
        as_caller(parties.owner), "Studio A", Decimal("40"),
    )
    outcome = await scheduler.create_reservation(
        as_caller(parties.requester), studio.id, START, START + timedelta(hours=2),
    )
    return outcome.value


async def accepted_case(test_db, parties, as_caller, budget=None):
    service = NegotiationService(test_db)
    case = (await service.open_case(
        as_caller(parties.requester), parties.owner, "Mix my EP", budget=budget,
    )).value
    await service.transition_case(case.id, as_caller(parties.owner), "accept")
    return case


async def test_booking_payment_uses_reservation_total(
    ledger, test_db, parties, as_caller,
):
    reservation = await booking(test_db, parties, as_caller)
    outcome = await ledger.record_transaction(
        as_caller(parties.requester), TransactionKind.BOOKING, reservation.id,
    )
    record = outcome.value
    assert outcome.warnings == []
    assert record.amount == Decimal("80.00")
    assert (record.buyer_id, record.seller_id) == (parties.requester, parties.owner)
    assert record.reservation_id == reservation.id
    assert record.case_id is None
    assert record.reference_id == reservation.id
    assert record.payment_method == "card"

    stored = await ReservationScheduler(test_db).get_reservation(
        reservation.id, as_caller(parties.owner),
    )
    assert stored.status == "pending"


async def test_service_payment_keeps_case_status(ledger, test_db, parties, as_caller):
    case = await accepted_case(test_db, parties, as_caller, budget=Decimal("300"))
    record = (await ledger.record_transaction(
        as_caller(parties.requester), TransactionKind.SERVICE, case.id,
        amount=Decimal("150.005"), payment_method=" PayPal ",
    )).value
    assert record.amount == Decimal("150.01")
    assert record.payment_method == "paypal"
    assert record.seller_id == parties.owner

    service = NegotiationService(test_db)
    assert (await service.get_case(case.id, as_caller(parties.owner))).status == "accepted"


async def test_only_paying_side_records(ledger, test_db, parties, as_caller):
    reservation = await booking(test_db, parties, as_caller)
    with pytest.raises(ForbiddenError):
        await ledger.record_transaction(
            as_caller(parties.owner), TransactionKind.BOOKING, reservation.id,
        )
    case = await accepted_case(test_db, parties, as_caller, budget=Decimal("50"))
    with pytest.raises(ForbiddenError):
        await ledger.record_transaction(
            as_caller(parties.outsider), TransactionKind.SERVICE, case.id,
        )
    assert await ledger.list_transactions(as_caller(parties.owner)) == []


async def test_unpayable_states_and_inputs(ledger, test_db, parties, as_caller):
    client = as_caller(parties.requester)
    reservation = await booking(test_db, parties, as_caller)
    await ReservationScheduler(test_db).transition_reservation(
        reservation.id, client, "cancel",
    )
    with pytest.raises(InvalidTransitionError):
        await ledger.record_transaction(client, TransactionKind.BOOKING, reservation.id)

    pending = (await NegotiationService(test_db).open_case(
        client, parties.owner, "Master the album",
    )).value
    with pytest.raises(InvalidTransitionError):
        await ledger.record_transaction(
            client, TransactionKind.SERVICE, pending.id, amount=Decimal("10"),
        )

    unpriced = await accepted_case(test_db, parties, as_caller)
    with pytest.raises(InputValidationError):
        await ledger.record_transaction(client, TransactionKind.SERVICE, unpriced.id)
    with pytest.raises(InputValidationError):
        await ledger.record_transaction(
            client, TransactionKind.SERVICE, unpriced.id, amount=Decimal("0"),
        )
    with pytest.raises(NotFoundError):
        await ledger.record_transaction(client, TransactionKind.BOOKING, uuid4())


async def test_seller_notified_buyer_logged(
    ledger, test_db, test_session_factory, parties, as_caller,
):
    reservation = await booking(test_db, parties, as_caller)
    record = (await ledger.record_transaction(
        as_caller(parties.requester), TransactionKind.BOOKING, reservation.id,
    )).value

    async with test_session_factory() as db:
        note = (await db.execute(
            select(Notification).where(Notification.reference_id == record.id),
        )).scalar_one()
        activity = (await db.execute(
            select(ActivityRecord).where(ActivityRecord.reference_id == record.id),
        )).scalar_one()
    assert note.recipient_id == parties.owner
    assert note.type == "transaction_completed"
    assert note.message == 'Requester paid $80.00 for "Studio A"'
    assert activity.party_id == parties.requester
    assert activity.title == 'Paid $80.00 for "Studio A"'


async def test_list_transactions_filters(ledger, test_db, parties, as_caller):
    buyer = as_caller(parties.requester)
    reservation = await booking(test_db, parties, as_caller)
    case = await accepted_case(test_db, parties, as_caller, budget=Decimal("200"))
    await ledger.record_transaction(buyer, TransactionKind.BOOKING, reservation.id)
    await ledger.record_transaction(buyer, TransactionKind.SERVICE, case.id)

    bought = await ledger.list_transactions(buyer)
    assert {t.kind for t in bought} == {"booking", "service"}
    sold = await ledger.list_transactions(as_caller(parties.owner), as_seller=True)
    assert len(sold) == 2
    services = await ledger.list_transactions(buyer, kind=TransactionKind.SERVICE)
    assert [t.amount for t in services] == [Decimal("200.00")]
    for_booking = await ledger.list_transactions(buyer, reference_id=reservation.id)
    assert [t.reservation_id for t in for_booking] == [reservation.id]
    assert await ledger.list_transactions(buyer, as_seller=True) == []
