"""Party ORM — an account that owns resources, makes requests, and receives notifications.

Invariants:
    - username is unique
    - Capabilities are NOT stored here; the permission gate supplies them per request
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from marketcore.db.base import Base, utcnow


class Party(Base):
    __tablename__ = "parties"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    @property
    def name(self) -> str:
        """Human-facing name used in notification text."""
        return self.display_name or self.username
