"""Notification Inbox — read side of the notifications the dispatcher writes.

Invariants:
    - A party only ever reads or marks its own notifications
    - Only is_read changes; notifications are never deleted here
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketcore.core.errors import ErrorContext, ForbiddenError, NotFoundError
from marketcore.infrastructure.database import run_bounded, transaction
from marketcore.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboxPage:
    notifications: list[Notification]
    unread_count: int


class NotificationInbox:
    def __init__(self, db: AsyncSession, timeout_seconds: float = 10.0):
        self.db = db
        self.timeout_seconds = timeout_seconds

    async def list_notifications(
        self, party_id: UUID, unread_only: bool = False, limit: int = 50,
    ) -> InboxPage:
        """Newest first, plus the party's total unread count."""
        return await run_bounded(
            self._list(party_id, unread_only, limit),
            self.timeout_seconds, "list_notifications",
        )

    async def _list(
        self, party_id: UUID, unread_only: bool, limit: int,
    ) -> InboxPage:
        query = select(Notification).where(Notification.recipient_id == party_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        rows = (await self.db.execute(query)).scalars().all()
        unread = await self.db.scalar(
            select(func.count()).select_from(Notification).where(
                Notification.recipient_id == party_id,
                Notification.is_read.is_(False),
            ),
        )
        return InboxPage(list(rows), unread or 0)

    async def mark_read(
        self, notification_id: UUID, party_id: UUID,
    ) -> Notification:
        return await run_bounded(
            self._mark_read(notification_id, party_id),
            self.timeout_seconds, "mark_read",
        )

    async def _mark_read(
        self, notification_id: UUID, party_id: UUID,
    ) -> Notification:
        ctx = ErrorContext(
            party_id=str(party_id), entity_id=str(notification_id),
            operation="mark_read",
        )
        async with transaction(self.db, "mark_read"):
            notification = await self.db.get(Notification, notification_id)
            if notification is None:
                raise NotFoundError("Notification", str(notification_id), ctx)
            if notification.recipient_id != party_id:
                raise ForbiddenError("Not your notification", ctx)
            notification.is_read = True
        return notification

    async def mark_all_read(self, party_id: UUID) -> int:
        """Mark every unread notification of the party read. Returns how many changed."""
        return await run_bounded(
            self._mark_all_read(party_id), self.timeout_seconds, "mark_all_read",
        )

    async def _mark_all_read(self, party_id: UUID) -> int:
        async with transaction(self.db, "mark_all_read"):
            result = await self.db.execute(
                update(Notification)
                .where(
                    Notification.recipient_id == party_id,
                    Notification.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False),
            )
        logger.info(
            "Marked %d notification(s) read", result.rowcount,
            extra={"party_id": str(party_id)},
        )
        return result.rowcount
