"""Affiliate engine schema: clicks, commissions, inventory, alerts, cache.

Revision ID: 3f1a9c2e7b01
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "3f1a9c2e7b01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "affiliate_clicks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vendor", sa.String(32), nullable=False, index=True),
        sa.Column("target_url", sa.String(2000), nullable=False),
        sa.Column("content_ref", sa.String(200), nullable=True, index=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("referrer", sa.String(1000), nullable=True),
        sa.Column("utm_source", sa.String(200), nullable=True),
        sa.Column("utm_medium", sa.String(200), nullable=True),
        sa.Column("utm_campaign", sa.String(200), nullable=True),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("converted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("conversion_value", sa.Float, nullable=True),
        sa.Column("commission_earned", sa.Float, nullable=True),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "commission_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("click_id", sa.String(36), nullable=False, index=True),
        sa.Column("vendor", sa.String(32), nullable=False, index=True),
        sa.Column("external_product_id", sa.String(200), nullable=False),
        sa.Column("external_order_id", sa.String(200), nullable=False),
        sa.Column("order_value", sa.Float, nullable=False),
        sa.Column("rate_kind", sa.String(16), nullable=False),
        sa.Column("commission_rate", sa.Float, nullable=False),
        sa.Column("commission_earned", sa.Float, nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("conversion_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("utm_source", sa.String(200), nullable=True),
        sa.Column("utm_medium", sa.String(200), nullable=True),
        sa.Column("utm_campaign", sa.String(200), nullable=True),
        sa.Column("content_ref", sa.String(200), nullable=True, index=True),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.UniqueConstraint("vendor", "external_order_id", name="uq_commission_vendor_order"),
    )
    op.create_index(
        "idx_commission_status_date", "commission_records", ["status", "conversion_date"]
    )
    op.create_table(
        "commission_alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.String(32), nullable=False, server_default="high_commission"),
        sa.Column("commission_id", sa.String(36), nullable=False, index=True),
        sa.Column("vendor", sa.String(32), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "inventory_items",
        sa.Column("vendor_product_id", sa.String(250), primary_key=True),
        sa.Column("vendor", sa.String(32), nullable=False, index=True),
        sa.Column("product_id", sa.String(200), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("original_price", sa.Float, nullable=True),
        sa.Column("availability", sa.String(16), nullable=False, index=True),
        sa.Column("stock_quantity", sa.Integer, nullable=True),
        sa.Column("affiliate_link", sa.String(2000), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, index=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "price_alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_id", sa.String(200), nullable=False, index=True),
        sa.Column("vendor", sa.String(32), nullable=False),
        sa.Column("old_price", sa.Float, nullable=True),
        sa.Column("new_price", sa.Float, nullable=False),
        sa.Column("discount_percentage", sa.Float, nullable=False, server_default="0"),
        sa.Column("alert_type", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_table(
        "recommendation_cache",
        sa.Column("cache_key", sa.String(300), primary_key=True),
        sa.Column("content_ref", sa.String(200), nullable=False, index=True),
        sa.Column("items", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "content_items",
        sa.Column("id", sa.String(200), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("content_items")
    op.drop_table("recommendation_cache")
    op.drop_table("price_alerts")
    op.drop_table("inventory_items")
    op.drop_table("commission_alerts")
    op.drop_index("idx_commission_status_date", table_name="commission_records")
    op.drop_table("commission_records")
    op.drop_table("affiliate_clicks")
