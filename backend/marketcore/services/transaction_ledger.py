"""Transaction Ledger — records payments for bookings and service requests.

Invariants:
    - Append-only: a recorded transaction is never updated or deleted
    - Only the paying side records: the reservation requester or the case client
    - The seller is derived from the paid entity (resource owner, case provider),
      never taken from input
    - Recording a payment never changes the reservation or case status; those
      moves stay with RESERVATION_MACHINE / CASE_MACHINE and their actors
    - Side effects dispatched only after commit: the seller is notified, the
      buyer gets an activity record

Design Decisions:
    - No payment capture: the row records that a payment happened, so its
      existence is the completed state
    - Amount defaults to what the entity already prices (reservation total,
      case budget); an explicit amount overrides it
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.domain_types import (
    CaseStatus, EntityKind, ReservationStatus, TransactionKind,
)
from marketcore.core.errors import (
    ErrorContext, ForbiddenError, InputValidationError, InvalidTransitionError,
    NotFoundError,
)
from marketcore.core.identity import Caller
from marketcore.core.scheduling import CENTS
from marketcore.core.side_effects import TransitionEvent
from marketcore.infrastructure.database import run_bounded, transaction
from marketcore.models.negotiation_case import NegotiationCase
from marketcore.models.reservation import Reservation
from marketcore.models.transaction_record import TransactionRecord
from marketcore.services.party_directory import display_name
from marketcore.services.side_effect_dispatcher import (
    OperationOutcome, SideEffectDispatcher, dispatch_all,
)

logger = logging.getLogger(__name__)

# Cancelled or rejected work cannot be paid for
_PAYABLE_RESERVATIONS = {
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.COMPLETED.value,
}
_PAYABLE_CASES = {
    CaseStatus.ACCEPTED.value,
    CaseStatus.IN_PROGRESS.value,
    CaseStatus.COMPLETED.value,
}


@dataclass(frozen=True)
class _Settlement:
    """Who pays whom, for what, as read under the entity lock."""
    seller_id: UUID
    subject: str
    default_amount: Decimal | None


class TransactionLedger:
    """Append-only payment records tied to reservations and service requests."""

    def __init__(
        self, db: AsyncSession,
        dispatcher: SideEffectDispatcher | None = None,
        timeout_seconds: float = 10.0,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.timeout_seconds = timeout_seconds

    async def record_transaction(
        self, caller: Caller, kind: TransactionKind, reference_id: UUID,
        amount: Decimal | None = None, payment_method: str = "card",
    ) -> OperationOutcome[TransactionRecord]:
        """Record that the caller paid for a booking or a service request."""
        if amount is not None and amount <= 0:
            raise InputValidationError("amount must be positive", "amount")
        payment_method = payment_method.strip().lower()
        if not payment_method:
            raise InputValidationError("payment_method cannot be empty", "payment_method")

        record, subject = await run_bounded(
            self._record(caller, kind, reference_id, amount, payment_method),
            self.timeout_seconds, "record_transaction",
        )
        event = TransitionEvent(
            entity_kind=EntityKind.TRANSACTION,
            entity_id=record.id,
            old_state=None,
            new_state="completed",
            actor_id=caller.party_id,
            actor_name=await display_name(self.db, caller.party_id),
            counterpart_id=record.seller_id,
            subject=subject,
            amount=record.amount,
        )
        warnings = await dispatch_all(self.dispatcher, [event])
        return OperationOutcome(record, warnings)

    async def _record(
        self, caller: Caller, kind: TransactionKind, reference_id: UUID,
        amount: Decimal | None, payment_method: str,
    ) -> tuple[TransactionRecord, str]:
        ctx = ErrorContext(
            party_id=str(caller.party_id), entity_id=str(reference_id),
            operation="record_transaction",
        )
        async with transaction(self.db, "record_transaction"):
            if kind == TransactionKind.BOOKING:
                settlement = await self._booking(reference_id, caller, ctx)
            else:
                settlement = await self._service(reference_id, caller, ctx)
            amount = amount if amount is not None else settlement.default_amount
            if amount is None or amount <= 0:
                raise InputValidationError(
                    "amount is required when nothing is priced yet", "amount", ctx,
                )
            record = TransactionRecord(
                buyer_id=caller.party_id,
                seller_id=settlement.seller_id,
                kind=kind.value,
                reservation_id=reference_id if kind == TransactionKind.BOOKING else None,
                case_id=reference_id if kind == TransactionKind.SERVICE else None,
                amount=amount.quantize(CENTS, rounding=ROUND_HALF_UP),
                payment_method=payment_method,
            )
            self.db.add(record)
            await self.db.flush()
        logger.info(
            "Transaction recorded: %s %s", kind.value, record.amount,
            extra={"party_id": str(caller.party_id), "entity_id": str(record.id)},
        )
        return record, settlement.subject

    async def _booking(
        self, reservation_id: UUID, caller: Caller, ctx: ErrorContext,
    ) -> _Settlement:
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update(of=Reservation)
            .execution_options(populate_existing=True),
        )
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reservation", str(reservation_id), ctx)
        if reservation.requester_id != caller.party_id:
            raise ForbiddenError("Only the requester may pay for this booking", ctx)
        if reservation.status not in _PAYABLE_RESERVATIONS:
            raise InvalidTransitionError("reservation", reservation.status, "pay", ctx)
        return _Settlement(
            seller_id=reservation.resource.owner_id,
            subject=reservation.resource.name,
            default_amount=reservation.total_amount,
        )

    async def _service(
        self, case_id: UUID, caller: Caller, ctx: ErrorContext,
    ) -> _Settlement:
        result = await self.db.execute(
            select(NegotiationCase)
            .where(NegotiationCase.id == case_id)
            .with_for_update()
            .execution_options(populate_existing=True),
        )
        case = result.scalar_one_or_none()
        if case is None:
            raise NotFoundError("Service request", str(case_id), ctx)
        if case.client_id != caller.party_id:
            raise ForbiddenError("Only the client may pay for this service request", ctx)
        if case.status not in _PAYABLE_CASES:
            raise InvalidTransitionError("service request", case.status, "pay", ctx)
        return _Settlement(
            seller_id=case.provider_id,
            subject=case.project_title,
            default_amount=case.budget,
        )

    async def list_transactions(
        self, caller: Caller, as_seller: bool = False,
        kind: TransactionKind | None = None,
        reference_id: UUID | None = None,
    ) -> list[TransactionRecord]:
        """The caller's purchases, or sales when as_seller. Newest first."""
        query = select(TransactionRecord)
        if as_seller:
            query = query.where(TransactionRecord.seller_id == caller.party_id)
        else:
            query = query.where(TransactionRecord.buyer_id == caller.party_id)
        if kind is not None:
            query = query.where(TransactionRecord.kind == kind.value)
        if reference_id is not None:
            query = query.where(or_(
                TransactionRecord.reservation_id == reference_id,
                TransactionRecord.case_id == reference_id,
            ))
        query = query.order_by(TransactionRecord.created_at.desc())
        result = await run_bounded(
            self.db.execute(query), self.timeout_seconds, "list_transactions",
        )
        return list(result.scalars().all())
