"""Side-Effect Rendering — notification and activity drafts per transition.

Tests:
    - Counterpart notified, actor never notified
    - Exactly one activity draft per event, addressed to the actor
    - Bid placement phrasing differs between Bid and Request listings
    - Events without a counterpart render activity only
    - Recorded payments notify the seller with the paid amount
"""

from decimal import Decimal
from uuid import uuid4

from marketcore.core.domain_types import ActivityType, EntityKind, NotificationType
from marketcore.core.side_effects import (
    TransitionEvent, render_activity, render_notification, render_side_effects,
)

ACTOR = uuid4()
OTHER = uuid4()


def event(kind=EntityKind.RESERVATION, old=None, new="pending", **kw) -> TransitionEvent:
    fields = dict(
        entity_kind=kind, entity_id=uuid4(), old_state=old, new_state=new,
        actor_id=ACTOR, actor_name="Ana", counterpart_id=OTHER,
        subject="Studio A",
    )
    fields.update(kw)
    return TransitionEvent(**fields)


def test_booking_request_notifies_owner():
    draft = render_notification(event())
    assert draft.recipient_id == OTHER
    assert draft.type == NotificationType.BOOKING_REQUESTED
    assert draft.title == "New Booking Request"
    assert draft.message == "Ana requested to book Studio A"
    assert draft.reference_type == EntityKind.RESERVATION


def test_confirmation_message():
    draft = render_notification(event(old="pending", new="confirmed"))
    assert draft.type == NotificationType.BOOKING_CONFIRMED
    assert draft.message == "Your booking for Studio A has been confirmed!"


def test_actor_is_never_notified():
    assert render_notification(event(counterpart_id=ACTOR)) is None
    assert render_notification(event(counterpart_id=None)) is None


def test_case_acceptance():
    draft = render_notification(event(
        kind=EntityKind.NEGOTIATION_CASE, old="pending", new="accepted",
        subject="Mix my EP",
    ))
    assert draft.type == NotificationType.JOB_ACCEPTED
    assert draft.message == 'Ana has accepted your service request for "Mix my EP"'


def test_bid_placed_shows_amount():
    draft = render_notification(event(
        kind=EntityKind.BID, subject="Beat pack", amount=Decimal("110.00"),
    ))
    assert draft.type == NotificationType.BID_PLACED
    assert draft.title == 'New bid on "Beat pack"'
    assert draft.message == "Ana placed a bid of $110.00"


def test_request_mode_bid_phrasing():
    draft = render_notification(event(kind=EntityKind.BID, subject="Feature verse"))
    assert draft.title == 'New request for "Feature verse"'
    activity = render_activity(event(kind=EntityKind.BID, subject="Feature verse"))
    assert activity.title == 'Requested "Feature verse"'


def test_activity_always_for_actor():
    notifications, activity = render_side_effects(event(old="pending", new="cancelled"))
    assert len(notifications) == 1
    assert activity.party_id == ACTOR
    assert activity.type == ActivityType.RESERVATION
    assert activity.description == "Status changed from pending to cancelled"


def test_creation_activity_description():
    activity = render_activity(event())
    assert activity.title == 'Booked studio "Studio A"'
    assert activity.description == "Created with status pending"


def test_listing_event_is_activity_only():
    notifications, activity = render_side_effects(event(
        kind=EntityKind.LISTING, new="active", counterpart_id=None,
        subject="Collab wanted",
    ))
    assert notifications == []
    assert activity.type == ActivityType.AUCTION
    assert activity.title == 'Created listing "Collab wanted"'


def test_unlisted_state_gets_generic_activity_title():
    activity = render_activity(event(
        kind=EntityKind.LISTING, old="active", new="closed", counterpart_id=None,
        subject="Collab wanted",
    ))
    assert activity.title == "Listing closed: Collab wanted"


def test_payment_notifies_seller():
    notifications, activity = render_side_effects(event(
        kind=EntityKind.TRANSACTION, new="completed", amount=Decimal("80.00"),
    ))
    assert [(n.recipient_id, n.type) for n in notifications] == [
        (OTHER, NotificationType.TRANSACTION_COMPLETED),
    ]
    assert notifications[0].title == "New Purchase!"
    assert notifications[0].message == 'Ana paid $80.00 for "Studio A"'
    assert activity.type == ActivityType.TRANSACTION
    assert activity.title == 'Paid $80.00 for "Studio A"'
