"""Exclusion constraint — no two live reservations on one resource overlap.

Revision ID: 002_reservation_no_overlap
Revises: 001_initial
Create Date: 2026-10-19

Backs the scheduler's locked availability check at the database level.
tstzrange(start_at, end_at) is half-open '[)', so back-to-back bookings are
allowed. btree_gist provides the = operator class for resource_id in a GiST
index. Only pending/confirmed rows hold a slot.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002_reservation_no_overlap"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        """
        ALTER TABLE reservations
        ADD CONSTRAINT ex_reservations_no_overlap
        EXCLUDE USING gist (
            resource_id WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
        )
        WHERE (status IN ('pending', 'confirmed'))
        """
    )


def downgrade() -> None:
    op.drop_constraint("ex_reservations_no_overlap", "reservations")
