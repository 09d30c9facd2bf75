"""Negotiation State Machine — one generic engine, two declarative transition tables.

Invariants:
    - (state, action) absent from the table -> InvalidTransitionError
    - (state, action) present but actor holds none of the allowed roles -> ForbiddenError
    - The table lookup happens before the role check (an impossible move is
      reported as impossible regardless of who asks)
    - States with no outgoing transitions are terminal
    - StateMachine.apply is PURE: returns the next state, the shell assigns it

Design Decisions:
    - Declarative tables over per-handler if-chains: the complete rule set is
      visible in one place and enumerable by tests
    - Actor roles are relative to the entity (owner/requester, provider/client),
      resolved by the *_roles helpers from party ids, never from global roles
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Iterable, TypeVar

from marketcore.core.domain_types import (
    ActorRole, CaseStatus, PartyId, ReservationStatus,
)
from marketcore.core.errors import (
    ErrorContext, ForbiddenError, InvalidTransitionError,
)

S = TypeVar("S", bound=Enum)


class ReservationAction(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"


class CaseAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


@dataclass(frozen=True)
class Transition(Generic[S]):
    """One row of a transition table."""
    source: S
    action: str
    actors: frozenset[ActorRole]
    target: S


class StateMachine(Generic[S]):
    """Finite-state engine driven by a (state, action) -> Transition table."""

    def __init__(
        self, entity_type: str, states: type[S],
        transitions: Iterable[Transition[S]],
    ):
        self.entity_type = entity_type
        self.states = states
        self._table: dict[tuple[S, str], Transition[S]] = {}
        for t in transitions:
            key = (t.source, t.action)
            if key in self._table:
                raise ValueError(
                    f"Duplicate transition for {entity_type}: {t.source.value}/{t.action}",
                )
            if not t.actors:
                raise ValueError(
                    f"Transition {t.source.value}/{t.action} allows no actor",
                )
            self._table[key] = t

    @property
    def transitions(self) -> list[Transition[S]]:
        return list(self._table.values())

    @property
    def actions(self) -> set[str]:
        return {action for _, action in self._table}

    def lookup(self, current: S, action: str) -> Transition[S] | None:
        return self._table.get((current, action))

    def actions_from(self, state: S) -> set[str]:
        return {action for source, action in self._table if source == state}

    def is_terminal(self, state: S) -> bool:
        return not self.actions_from(state)

    def apply(
        self, current: S, action: str, actor_roles: Iterable[ActorRole],
        context: ErrorContext | None = None,
    ) -> S:
        """Validate (current, action, actor) and return the next state."""
        transition = self._table.get((current, action))
        if transition is None:
            raise InvalidTransitionError(
                self.entity_type, current.value, action, context,
            )
        if transition.actors.isdisjoint(actor_roles):
            allowed = ", ".join(sorted(r.value for r in transition.actors))
            raise ForbiddenError(
                f"Only the {allowed} may {action} this {self.entity_type}",
                context,
            )
        return transition.target


# ─── Reservation table ──────────────────────────────────────────

_OWNER = frozenset({ActorRole.OWNER})
_OWNER_OR_REQUESTER = frozenset({ActorRole.OWNER, ActorRole.REQUESTER})

RESERVATION_MACHINE: StateMachine[ReservationStatus] = StateMachine(
    "reservation", ReservationStatus, [
        Transition(ReservationStatus.PENDING, ReservationAction.CONFIRM.value,
                   _OWNER, ReservationStatus.CONFIRMED),
        Transition(ReservationStatus.PENDING, ReservationAction.CANCEL.value,
                   _OWNER_OR_REQUESTER, ReservationStatus.CANCELLED),
        Transition(ReservationStatus.CONFIRMED, ReservationAction.CANCEL.value,
                   _OWNER_OR_REQUESTER, ReservationStatus.CANCELLED),
        Transition(ReservationStatus.CONFIRMED, ReservationAction.COMPLETE.value,
                   _OWNER, ReservationStatus.COMPLETED),
    ],
)


# ─── NegotiationCase table ──────────────────────────────────────

_PROVIDER = frozenset({ActorRole.PROVIDER})
_CLIENT = frozenset({ActorRole.CLIENT})

CASE_MACHINE: StateMachine[CaseStatus] = StateMachine(
    "service request", CaseStatus, [
        Transition(CaseStatus.PENDING, CaseAction.ACCEPT.value,
                   _PROVIDER, CaseStatus.ACCEPTED),
        Transition(CaseStatus.PENDING, CaseAction.REJECT.value,
                   _PROVIDER, CaseStatus.REJECTED),
        Transition(CaseStatus.ACCEPTED, CaseAction.START.value,
                   _PROVIDER, CaseStatus.IN_PROGRESS),
        Transition(CaseStatus.IN_PROGRESS, CaseAction.COMPLETE.value,
                   _PROVIDER, CaseStatus.COMPLETED),
        Transition(CaseStatus.PENDING, CaseAction.CANCEL.value,
                   _CLIENT, CaseStatus.CANCELLED),
        Transition(CaseStatus.ACCEPTED, CaseAction.CANCEL.value,
                   _CLIENT, CaseStatus.CANCELLED),
    ],
)


# ─── Actor role resolution ──────────────────────────────────────

def reservation_roles(
    party: PartyId, owner_id: PartyId, requester_id: PartyId,
) -> frozenset[ActorRole]:
    roles = set()
    if party == owner_id:
        roles.add(ActorRole.OWNER)
    if party == requester_id:
        roles.add(ActorRole.REQUESTER)
    return frozenset(roles)


def case_roles(
    party: PartyId, client_id: PartyId, provider_id: PartyId,
) -> frozenset[ActorRole]:
    roles = set()
    if party == client_id:
        roles.add(ActorRole.CLIENT)
    if party == provider_id:
        roles.add(ActorRole.PROVIDER)
    return frozenset(roles)
