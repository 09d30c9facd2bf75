"""Notification Routes — the caller's inbox."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.api.deps import CallerDep, TimeoutDep
from marketcore.core.identity import Caller
from marketcore.infrastructure.database import get_db
from marketcore.schemas.notification import InboxResponse, NotificationResponse
from marketcore.services.notification_inbox import NotificationInbox

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def _inbox(
    db: AsyncSession = Depends(get_db), timeout: float = TimeoutDep,
) -> NotificationInbox:
    return NotificationInbox(db, timeout)


@router.get("", response_model=InboxResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    caller: Caller = CallerDep,
    inbox: NotificationInbox = Depends(_inbox),
):
    page = await inbox.list_notifications(caller.party_id, unread_only, limit)
    return InboxResponse(
        notifications=[
            NotificationResponse.model_validate(n) for n in page.notifications
        ],
        unread_count=page.unread_count,
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    caller: Caller = CallerDep,
    inbox: NotificationInbox = Depends(_inbox),
):
    return await inbox.mark_read(notification_id, caller.party_id)


@router.post("/read-all")
async def mark_all_read(
    caller: Caller = CallerDep,
    inbox: NotificationInbox = Depends(_inbox),
):
    return {"updated": await inbox.mark_all_read(caller.party_id)}
