"""Negotiation Routes — service requests and their transitions."""

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.api.deps import CallerDep, DispatcherDep, TimeoutDep
from marketcore.core.identity import Caller
from marketcore.infrastructure.database import get_db
from marketcore.schemas.negotiation import (
    CaseCreate, CaseOutcome, CaseResponse, CaseTransition,
)
from marketcore.services.negotiation import NegotiationService
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher

router = APIRouter(prefix="/api/v1/cases", tags=["cases"])


def _service(
    db: AsyncSession = Depends(get_db),
    dispatcher: SideEffectDispatcher = DispatcherDep,
    timeout: float = TimeoutDep,
) -> NegotiationService:
    return NegotiationService(db, dispatcher, timeout)


def _outcome(outcome) -> CaseOutcome:
    return CaseOutcome(
        case=CaseResponse.model_validate(outcome.value),
        warnings=[asdict(w) for w in outcome.warnings],
    )


@router.post("", response_model=CaseOutcome, status_code=status.HTTP_201_CREATED)
async def open_case(
    body: CaseCreate,
    caller: Caller = CallerDep,
    service: NegotiationService = Depends(_service),
):
    outcome = await service.open_case(
        caller, body.provider_id, body.project_title,
        body.project_description, body.budget, body.deadline,
    )
    return _outcome(outcome)


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: UUID,
    caller: Caller = CallerDep,
    service: NegotiationService = Depends(_service),
):
    return await service.get_case(case_id, caller)


@router.post("/{case_id}/transitions", response_model=CaseOutcome)
async def transition_case(
    case_id: UUID, body: CaseTransition,
    caller: Caller = CallerDep,
    service: NegotiationService = Depends(_service),
):
    outcome = await service.transition_case(
        case_id, caller, body.action, body.response,
    )
    return _outcome(outcome)
