"""Transactions — append-only payment records for bookings and service requests.

Revision ID: 003_transactions
Revises: 002_reservation_no_overlap
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "003_transactions"
down_revision: Union[str, None] = "002_reservation_no_overlap"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("buyer_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("seller_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("reservation_id", UUID(as_uuid=True), sa.ForeignKey("reservations.id"), nullable=True),
        sa.Column("case_id", UUID(as_uuid=True), sa.ForeignKey("negotiation_cases.id"), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False, server_default="card"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint(
            "(reservation_id IS NULL) <> (case_id IS NULL)",
            name="ck_transactions_one_reference",
        ),
    )


def downgrade() -> None:
    op.drop_table("transactions")
