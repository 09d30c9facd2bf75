"""Side-Effect Rendering — turns a TransitionEvent into notification and activity drafts.

Invariants:
    - Exactly one ActivityDraft per event, addressed to the acting party
    - Zero or one NotificationDraft, addressed to the counterpart, never to the actor
    - Rendering is PURE: no persistence, no clock (timestamps added by the shell)
    - Unknown (kind, state) pairs render no notification but still log activity

Design Decisions:
    - Template tables keyed by (EntityKind, new_state): transitions into the same
      state always mean the same thing to the counterpart, so the action that
      caused them is not part of the key
    - Bid phrasing depends on the listing mode, carried as event.amount
      (None for Request-mode listings)
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from marketcore.core.domain_types import (
    ActivityType, EntityKind, NotificationType, PartyId,
)


@dataclass(frozen=True)
class TransitionEvent:
    """Everything the dispatcher needs to describe one state change."""
    entity_kind: EntityKind
    entity_id: UUID
    old_state: str | None
    new_state: str
    actor_id: PartyId
    actor_name: str
    counterpart_id: PartyId | None
    subject: str
    amount: Decimal | None = None


@dataclass(frozen=True)
class NotificationDraft:
    recipient_id: PartyId
    type: NotificationType
    title: str
    message: str
    reference_id: UUID
    reference_type: EntityKind


@dataclass(frozen=True)
class ActivityDraft:
    party_id: PartyId
    type: ActivityType
    title: str
    description: str
    reference_id: UUID
    reference_type: EntityKind


_NOTIFICATION_TEMPLATES: dict[
    tuple[EntityKind, str], tuple[NotificationType, str, str]
] = {
    # Reservations
    (EntityKind.RESERVATION, "pending"): (
        NotificationType.BOOKING_REQUESTED, "New Booking Request",
        "{actor} requested to book {subject}",
    ),
    (EntityKind.RESERVATION, "confirmed"): (
        NotificationType.BOOKING_CONFIRMED, "Booking Update",
        "Your booking for {subject} has been confirmed!",
    ),
    (EntityKind.RESERVATION, "cancelled"): (
        NotificationType.BOOKING_CANCELLED, "Booking Cancelled",
        "Booking for {subject} has been cancelled",
    ),
    (EntityKind.RESERVATION, "completed"): (
        NotificationType.BOOKING_COMPLETED, "Booking Update",
        "Booking for {subject} has been completed",
    ),
    # Negotiation cases
    (EntityKind.NEGOTIATION_CASE, "pending"): (
        NotificationType.JOB_REQUEST, "New Service Request",
        '{actor} sent you a service request for "{subject}"',
    ),
    (EntityKind.NEGOTIATION_CASE, "accepted"): (
        NotificationType.JOB_ACCEPTED, "Service Request Accepted",
        '{actor} has accepted your service request for "{subject}"',
    ),
    (EntityKind.NEGOTIATION_CASE, "rejected"): (
        NotificationType.JOB_REJECTED, "Service Request Declined",
        '{actor} has declined your service request for "{subject}"',
    ),
    (EntityKind.NEGOTIATION_CASE, "in_progress"): (
        NotificationType.JOB_UPDATED, "Work Started",
        '{actor} has started working on "{subject}"',
    ),
    (EntityKind.NEGOTIATION_CASE, "completed"): (
        NotificationType.JOB_UPDATED, "Project Completed",
        '{actor} has completed your project "{subject}"',
    ),
    (EntityKind.NEGOTIATION_CASE, "cancelled"): (
        NotificationType.JOB_UPDATED, "Service Request Updated",
        'Service request "{subject}" has been cancelled',
    ),
    # Bids (Request-mode placement handled in _bid_placed_template)
    (EntityKind.BID, "pending"): (
        NotificationType.BID_PLACED, 'New bid on "{subject}"',
        "{actor} placed a bid of {amount}",
    ),
    (EntityKind.BID, "accepted"): (
        NotificationType.BID_ACCEPTED, "Bid Accepted",
        'Your offer on "{subject}" was accepted',
    ),
    (EntityKind.BID, "rejected"): (
        NotificationType.BID_REJECTED, "Bid Declined",
        'Your offer on "{subject}" was declined',
    ),
    # Recorded payments
    (EntityKind.TRANSACTION, "completed"): (
        NotificationType.TRANSACTION_COMPLETED, "New Purchase!",
        '{actor} paid {amount} for "{subject}"',
    ),
}

_ACTIVITY_TYPES: dict[EntityKind, ActivityType] = {
    EntityKind.RESERVATION: ActivityType.RESERVATION,
    EntityKind.NEGOTIATION_CASE: ActivityType.NEGOTIATION,
    EntityKind.LISTING: ActivityType.AUCTION,
    EntityKind.BID: ActivityType.AUCTION,
    EntityKind.WORKSPACE: ActivityType.WORKSPACE_CREATED,
    EntityKind.TRANSACTION: ActivityType.TRANSACTION,
}

_ACTIVITY_TITLES: dict[tuple[EntityKind, str], str] = {
    (EntityKind.RESERVATION, "pending"): 'Booked studio "{subject}"',
    (EntityKind.NEGOTIATION_CASE, "pending"): "Service Request Sent",
    (EntityKind.BID, "pending"): 'Bid {amount} on "{subject}"',
    (EntityKind.LISTING, "active"): 'Created listing "{subject}"',
    (EntityKind.WORKSPACE, "created"): 'Created workspace "{subject}"',
    (EntityKind.TRANSACTION, "completed"): 'Paid {amount} for "{subject}"',
}


def _bid_placed_template(event: TransitionEvent) -> tuple[NotificationType, str, str]:
    if event.amount is None:
        return (
            NotificationType.BID_PLACED, 'New request for "{subject}"',
            "{actor} sent you a collaboration request",
        )
    return _NOTIFICATION_TEMPLATES[(EntityKind.BID, "pending")]


def render_notification(event: TransitionEvent) -> NotificationDraft | None:
    """Counterpart notification for this event, if the counterpart should hear about it."""
    if event.counterpart_id is None or event.counterpart_id == event.actor_id:
        return None
    key = (event.entity_kind, event.new_state)
    if key == (EntityKind.BID, "pending"):
        template = _bid_placed_template(event)
    else:
        template = _NOTIFICATION_TEMPLATES.get(key)
    if template is None:
        return None
    ntype, title, message = template
    values = _template_values(event)
    return NotificationDraft(
        recipient_id=event.counterpart_id,
        type=ntype,
        title=title.format(**values),
        message=message.format(**values),
        reference_id=event.entity_id,
        reference_type=event.entity_kind,
    )


def render_activity(event: TransitionEvent) -> ActivityDraft:
    """Activity record for the acting party. Always produced."""
    values = _template_values(event)
    key = (event.entity_kind, event.new_state)
    if key == (EntityKind.BID, "pending") and event.amount is None:
        title = 'Requested "{subject}"'.format(**values)
    elif key in _ACTIVITY_TITLES:
        title = _ACTIVITY_TITLES[key].format(**values)
    else:
        label = event.entity_kind.value.replace("_", " ").capitalize()
        title = f"{label} {event.new_state.replace('_', ' ')}: {event.subject}"
    if event.old_state:
        description = f"Status changed from {event.old_state} to {event.new_state}"
    else:
        description = f"Created with status {event.new_state}"
    return ActivityDraft(
        party_id=event.actor_id,
        type=_ACTIVITY_TYPES[event.entity_kind],
        title=title,
        description=description,
        reference_id=event.entity_id,
        reference_type=event.entity_kind,
    )


def render_side_effects(
    event: TransitionEvent,
) -> tuple[list[NotificationDraft], ActivityDraft]:
    notification = render_notification(event)
    return ([notification] if notification else []), render_activity(event)


def _template_values(event: TransitionEvent) -> dict[str, str]:
    return {
        "actor": event.actor_name,
        "subject": event.subject,
        "amount": f"${event.amount}" if event.amount is not None else "",
    }
