"""initial schema

Revision ID: 3f1c2a9d7e40
Revises:
Create Date: 2026-10-18 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- subscription_tiers ---
    op.create_table(
        "subscription_tiers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("check_limit_daily", sa.Integer(), nullable=True),
        sa.Column("check_limit_monthly", sa.Integer(), nullable=True),
        sa.Column("register_limit_daily", sa.Integer(), nullable=True),
        sa.Column("register_limit_monthly", sa.Integer(), nullable=True),
        sa.Column("party_query_limit_daily", sa.Integer(), nullable=True),
        sa.Column("party_lookback_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("notification_email", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notification_webhook", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notification_priority", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    # --- tenants ---
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("subscription_tier_id", sa.Uuid(), sa.ForeignKey("subscription_tiers.id"), nullable=True),
        sa.Column("track_attribution", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("rate_limit_daily", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("rate_limit_monthly", sa.Integer(), nullable=False, server_default="20000"),
        sa.Column("notification_webhook_url", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    # --- api_keys ---
    op.create_table(
        "api_keys",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("key_hash", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False, server_default="default"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_keys_key_hash", "api_keys", ["key_hash"])

    # --- document_types ---
    op.create_table(
        "document_types",
        sa.Column("code", sa.String(10), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    # --- document_fingerprints ---
    op.create_table(
        "document_fingerprints",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("hash_value", sa.String(64), nullable=False, unique=True),
        sa.Column("disclosure_level", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(10), nullable=False, server_default="INV"),
        sa.Column("funded_at", sa.Date(), nullable=False),
        sa.Column("owner_tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("disclosure_level BETWEEN 1 AND 3", name="ck_document_fingerprints_level"),
    )
    op.create_index(
        "ix_document_fingerprints_owner_tenant_id", "document_fingerprints", ["owner_tenant_id"]
    )
    op.create_index(
        "ix_document_fingerprints_expires_at",
        "document_fingerprints",
        ["expires_at"],
        postgresql_where=sa.text("expires_at IS NOT NULL"),
    )

    # --- party_fingerprints ---
    op.create_table(
        "party_fingerprints",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("hash_value", sa.String(64), nullable=False),
        sa.Column("role", sa.String(10), nullable=False),
        sa.Column("first_checked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("first_registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("register_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_checker_tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("first_registerer_tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("hash_value", "role", name="uq_party_fingerprints_hash_role"),
        sa.CheckConstraint("role IN ('buyer', 'supplier')", name="ck_party_fingerprints_role"),
    )

    # --- usage_records ---
    op.create_table(
        "usage_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("period_type", sa.String(10), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("check_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("register_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("party_check_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("party_register_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quota_exceeded_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint(
            "tenant_id", "period_type", "period_start", name="uq_usage_records_tenant_period"
        ),
    )

    # --- usage_notifications ---
    op.create_table(
        "usage_notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("notification_type", sa.String(32), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint(
            "tenant_id",
            "notification_type",
            "period_start",
            name="uq_usage_notifications_tenant_type_period",
        ),
    )


def downgrade() -> None:
    op.drop_table("usage_notifications")
    op.drop_table("usage_records")
    op.drop_table("party_fingerprints")
    op.drop_index("ix_document_fingerprints_expires_at", table_name="document_fingerprints")
    op.drop_index("ix_document_fingerprints_owner_tenant_id", table_name="document_fingerprints")
    op.drop_table("document_fingerprints")
    op.drop_table("document_types")
    op.drop_index("ix_api_keys_key_hash", table_name="api_keys")
    op.drop_table("api_keys")
    op.drop_table("tenants")
    op.drop_table("subscription_tiers")
