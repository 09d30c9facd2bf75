"""Initial schema — parties, resources, reservations, cases, listings, bids,
workspaces, role grants, notifications, activity records.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "parties",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "resources",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("lock_version", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("hourly_rate > 0", name="ck_resources_hourly_rate_positive"),
    )

    op.create_table(
        "reservations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("resource_id", UUID(as_uuid=True), sa.ForeignKey("resources.id"), nullable=False),
        sa.Column("requester_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("note", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_at > start_at", name="ck_reservations_end_after_start"),
    )
    op.create_index(
        "ix_reservations_resource_status", "reservations", ["resource_id", "status"],
    )

    op.create_table(
        "negotiation_cases",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("client_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("provider_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("project_title", sa.String(200), nullable=False),
        sa.Column("project_description", sa.Text, nullable=False),
        sa.Column("budget", sa.Numeric(10, 2), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("provider_response", sa.Text, nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("client_id <> provider_id", name="ck_negotiation_cases_distinct_parties"),
    )

    op.create_table(
        "auction_listings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("creator_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("mode", sa.String(20), nullable=False),
        sa.Column("minimum_bid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("current_high_bid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_version", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("minimum_bid >= 0", name="ck_auction_listings_minimum_bid_non_negative"),
        sa.CheckConstraint("current_high_bid >= 0", name="ck_auction_listings_high_bid_non_negative"),
    )

    op.create_table(
        "bids",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id", UUID(as_uuid=True),
            sa.ForeignKey("auction_listings.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("bidder_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount >= 0", name="ck_bids_amount_non_negative"),
    )
    op.create_index(
        "uq_bids_one_pending", "bids", ["listing_id", "bidder_id"],
        unique=True, postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "workspaces",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("icon", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "workspace_memberships",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "workspace_id", UUID(as_uuid=True),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("party_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("workspace_id", "party_id", name="uq_workspace_memberships_workspace_id"),
    )

    op.create_table(
        "role_grants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("party_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column(
            "workspace_id", UUID(as_uuid=True),
            sa.ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("party_id", "role", name="uq_role_grants_party_id"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("recipient_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("reference_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reference_type", sa.String(30), nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_notifications_recipient_read", "notifications", ["recipient_id", "is_read"],
    )

    op.create_table(
        "activity_records",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("party_id", UUID(as_uuid=True), sa.ForeignKey("parties.id"), nullable=False, index=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("reference_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reference_type", sa.String(30), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("activity_records")
    op.drop_index("ix_notifications_recipient_read", "notifications")
    op.drop_table("notifications")
    op.drop_table("role_grants")
    op.drop_table("workspace_memberships")
    op.drop_table("workspaces")
    op.drop_index("uq_bids_one_pending", "bids")
    op.drop_table("bids")
    op.drop_table("auction_listings")
    op.drop_table("negotiation_cases")
    op.drop_index("ix_reservations_resource_status", "reservations")
    op.drop_table("reservations")
    op.drop_table("resources")
    op.drop_table("parties")
