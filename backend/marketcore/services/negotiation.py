"""Negotiation Service — opens service requests and drives them through CASE_MACHINE.

Invariants:
    - client != provider on every case
    - Only participants see or move a case; outsiders get ForbiddenError
      before the transition table is consulted
    - accept/reject stamp responded_at; response text is stored only when the
      provider moves the case
    - Provider moves (accept, reject, start, complete) require can_accept_jobs,
      checked after the table so impossible moves still read as impossible
    - Side effects dispatched only after commit, counterpart is the other party
"""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.domain_types import ActorRole, CaseStatus, EntityKind
from marketcore.core.errors import (
    ErrorContext, ForbiddenError, InputValidationError, NotFoundError,
)
from marketcore.core.identity import Caller, Capability
from marketcore.core.scheduling import CENTS, ensure_utc
from marketcore.core.side_effects import TransitionEvent
from marketcore.core.transitions import CASE_MACHINE, CaseAction, case_roles
from marketcore.db.base import utcnow
from marketcore.infrastructure.database import run_bounded, transaction
from marketcore.models.negotiation_case import NegotiationCase
from marketcore.services.party_directory import display_name, get_party
from marketcore.services.side_effect_dispatcher import (
    OperationOutcome, SideEffectDispatcher, dispatch_all,
)

logger = logging.getLogger(__name__)

_RESPONSE_ACTIONS = {CaseAction.ACCEPT.value, CaseAction.REJECT.value}
_JOB_ACTIONS = _RESPONSE_ACTIONS | {
    CaseAction.START.value, CaseAction.COMPLETE.value,
}


class NegotiationService:
    """Service-request lifecycle between a client and a provider."""

    def __init__(
        self, db: AsyncSession,
        dispatcher: SideEffectDispatcher | None = None,
        timeout_seconds: float = 10.0,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.timeout_seconds = timeout_seconds

    async def open_case(
        self, caller: Caller, provider_id: UUID, title: str,
        description: str | None = None,
        budget: Decimal | None = None,
        deadline: datetime | None = None,
    ) -> OperationOutcome[NegotiationCase]:
        caller.require(Capability.REQUEST_PRODUCER_SERVICE, "open_case")
        if provider_id == caller.party_id:
            raise InputValidationError(
                "Cannot send a service request to yourself", "provider_id",
            )
        title = title.strip()
        if not title:
            raise InputValidationError("Project title cannot be empty", "title")
        if budget is not None:
            if budget < 0:
                raise InputValidationError("budget cannot be negative", "budget")
            budget = budget.quantize(CENTS)
        if deadline is not None:
            deadline = ensure_utc(deadline, "deadline")

        case = await run_bounded(
            self._insert_case(
                caller.party_id, provider_id, title, description, budget, deadline,
            ),
            self.timeout_seconds, "open_case",
        )
        warnings = await dispatch_all(self.dispatcher, [
            await self._event(case, None, caller.party_id),
        ])
        return OperationOutcome(case, warnings)

    async def _insert_case(
        self, client_id: UUID, provider_id: UUID, title: str,
        description: str | None, budget: Decimal | None,
        deadline: datetime | None,
    ) -> NegotiationCase:
        async with transaction(self.db, "open_case"):
            await get_party(self.db, provider_id, "open_case")
            case = NegotiationCase(
                client_id=client_id,
                provider_id=provider_id,
                project_title=title,
                project_description=description or "",
                budget=budget,
                deadline=deadline,
                status=CaseStatus.PENDING.value,
            )
            self.db.add(case)
            await self.db.flush()
        logger.info(
            "Service request opened",
            extra={"party_id": str(client_id), "entity_id": str(case.id)},
        )
        return case

    async def transition_case(
        self, case_id: UUID, caller: Caller, action: str,
        response: str | None = None,
    ) -> OperationOutcome[NegotiationCase]:
        """Apply accept / reject / start / complete / cancel for the caller."""
        case, old_state = await run_bounded(
            self._transition(case_id, caller, action, response),
            self.timeout_seconds, "transition_case",
        )
        warnings = await dispatch_all(self.dispatcher, [
            await self._event(case, old_state, caller.party_id),
        ])
        return OperationOutcome(case, warnings)

    async def _transition(
        self, case_id: UUID, caller: Caller, action: str,
        response: str | None,
    ) -> tuple[NegotiationCase, str]:
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(case_id),
            operation=f"case.{action}",
        )
        async with transaction(self.db, "transition_case"):
            result = await self.db.execute(
                select(NegotiationCase)
                .where(NegotiationCase.id == case_id)
                .with_for_update()
                .execution_options(populate_existing=True),
            )
            case = result.scalar_one_or_none()
            if case is None:
                raise NotFoundError("Service request", str(case_id), ctx)
            roles = case_roles(caller.party_id, case.client_id, case.provider_id)
            if not roles:
                raise ForbiddenError("Not a participant of this service request", ctx)
            old_state = case.status
            new_state = CASE_MACHINE.apply(CaseStatus(old_state), action, roles, ctx)
            if ActorRole.PROVIDER in roles and action in _JOB_ACTIONS:
                caller.require(Capability.ACCEPT_JOBS, "transition_case")
            case.status = new_state.value
            if action in _RESPONSE_ACTIONS:
                case.responded_at = utcnow()
            if response and ActorRole.PROVIDER in roles:
                case.provider_response = response
        logger.info(
            "Service request %s -> %s", old_state, case.status,
            extra={"party_id": str(caller.party_id), "entity_id": str(case_id)},
        )
        return case, old_state

    async def get_case(self, case_id: UUID, caller: Caller) -> NegotiationCase:
        case = await self.db.get(NegotiationCase, case_id)
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(case_id),
            operation="get_case",
        )
        if case is None:
            raise NotFoundError("Service request", str(case_id), ctx)
        if not case_roles(caller.party_id, case.client_id, case.provider_id):
            raise ForbiddenError("Not a participant of this service request", ctx)
        return case

    async def _event(
        self, case: NegotiationCase, old_state: str | None, actor_id: UUID,
    ) -> TransitionEvent:
        counterpart = case.provider_id if actor_id == case.client_id else case.client_id
        return TransitionEvent(
            entity_kind=EntityKind.NEGOTIATION_CASE,
            entity_id=case.id,
            old_state=old_state,
            new_state=case.status,
            actor_id=actor_id,
            actor_name=await display_name(self.db, actor_id),
            counterpart_id=counterpart,
            subject=case.project_title,
        )
