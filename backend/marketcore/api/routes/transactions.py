"""Transaction Routes — record and list payments."""

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.api.deps import CallerDep, DispatcherDep, TimeoutDep
from marketcore.core.domain_types import TransactionKind
from marketcore.core.identity import Caller
from marketcore.infrastructure.database import get_db
from marketcore.schemas.transaction import (
    TransactionCreate, TransactionOutcome, TransactionResponse,
)
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher
from marketcore.services.transaction_ledger import TransactionLedger

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


def _ledger(
    db: AsyncSession = Depends(get_db),
    dispatcher: SideEffectDispatcher = DispatcherDep,
    timeout: float = TimeoutDep,
) -> TransactionLedger:
    return TransactionLedger(db, dispatcher, timeout)


@router.post(
    "", response_model=TransactionOutcome, status_code=status.HTTP_201_CREATED,
)
async def record_transaction(
    body: TransactionCreate,
    caller: Caller = CallerDep,
    ledger: TransactionLedger = Depends(_ledger),
):
    outcome = await ledger.record_transaction(
        caller, body.kind, body.reference_id, body.amount, body.payment_method,
    )
    return TransactionOutcome(
        transaction=TransactionResponse.model_validate(outcome.value),
        warnings=[asdict(w) for w in outcome.warnings],
    )


@router.get("", response_model=list[TransactionResponse])
async def list_transactions(
    as_seller: bool = Query(False),
    kind: TransactionKind | None = Query(None),
    reference_id: UUID | None = Query(None),
    caller: Caller = CallerDep,
    ledger: TransactionLedger = Depends(_ledger),
):
    """The caller's purchases, or their sales with ?as_seller=true."""
    return await ledger.list_transactions(caller, as_seller, kind, reference_id)
