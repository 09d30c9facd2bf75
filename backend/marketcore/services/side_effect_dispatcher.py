"""Side-Effect Dispatcher — persists notifications and activity after a primary commit.

Invariants:
    - Runs in its OWN session, strictly after the primary transaction committed
    - A dispatch failure never propagates: it is logged with exc_info, counted,
      and returned as a DispatchWarning on the operation outcome
    - Notifications and the activity record of one event commit together

Design Decisions:
    - Awaited in-line rather than fire-and-forget: the caller learns about
      failed side effects in the same response, and tests need no polling
    - session_factory is any zero-arg callable returning an async context manager
      of AsyncSession (DatabaseSessionManager.session or an async_sessionmaker)
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncContextManager, Callable, Generic, Iterable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.side_effects import TransitionEvent, render_side_effects
from marketcore.models.notification import Notification
from marketcore.models.activity_record import ActivityRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class DispatchWarning:
    """Non-fatal report that one event's side effects were not recorded."""
    entity_kind: str
    entity_id: str
    new_state: str
    message: str


@dataclass
class OperationOutcome(Generic[T]):
    """Primary result of a committed operation plus side-effect warnings."""
    value: T
    warnings: list[DispatchWarning] = field(default_factory=list)


class SideEffectDispatcher:
    """Turns TransitionEvents into Notification and ActivityRecord rows."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory
        self.dispatched_count = 0
        self.failure_count = 0

    async def dispatch(self, event: TransitionEvent) -> list[DispatchWarning]:
        """Persist side effects of one event. Returns warnings, never raises."""
        notifications, activity = render_side_effects(event)
        try:
            async with self._session_factory() as db:
                for draft in notifications:
                    db.add(Notification(
                        recipient_id=draft.recipient_id,
                        type=draft.type.value,
                        title=draft.title,
                        message=draft.message,
                        reference_id=draft.reference_id,
                        reference_type=draft.reference_type.value,
                    ))
                db.add(ActivityRecord(
                    party_id=activity.party_id,
                    type=activity.type.value,
                    title=activity.title,
                    description=activity.description,
                    reference_id=activity.reference_id,
                    reference_type=activity.reference_type.value,
                ))
                await db.commit()
        except Exception as e:
            self.failure_count += 1
            logger.error(
                "Side-effect dispatch failed: %s", e, exc_info=True,
                extra={
                    "event_type": f"{event.entity_kind.value}.{event.new_state}",
                    "entity_id": str(event.entity_id),
                    "party_id": str(event.actor_id),
                },
            )
            return [DispatchWarning(
                entity_kind=event.entity_kind.value,
                entity_id=str(event.entity_id),
                new_state=event.new_state,
                message="Notifications for this change could not be recorded",
            )]
        self.dispatched_count += 1
        logger.info(
            "Dispatched %d notification(s)", len(notifications),
            extra={
                "event_type": f"{event.entity_kind.value}.{event.new_state}",
                "entity_id": str(event.entity_id),
            },
        )
        return []


async def dispatch_all(
    dispatcher: SideEffectDispatcher | None, events: Iterable[TransitionEvent],
) -> list[DispatchWarning]:
    """Dispatch events in order, collecting warnings. No-op without a dispatcher."""
    warnings: list[DispatchWarning] = []
    if dispatcher is None:
        return warnings
    for event in events:
        warnings.extend(await dispatcher.dispatch(event))
    return warnings
