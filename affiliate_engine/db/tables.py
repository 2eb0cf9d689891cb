"""SQLAlchemy ORM models for the affiliate engine."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Float, Index, Integer, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AffiliateClickRow(Base):
    """Every outbound affiliate link activation."""
    __tablename__ = "affiliate_clicks"

    id = Column(String(36), primary_key=True)
    vendor = Column(String(32), nullable=False, index=True)
    target_url = Column(String(2000), nullable=False)
    content_ref = Column(String(200), nullable=True, index=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6
    referrer = Column(String(1000), nullable=True)
    utm_source = Column(String(200), nullable=True)
    utm_medium = Column(String(200), nullable=True)
    utm_campaign = Column(String(200), nullable=True)
    session_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    # Set once, by the first conversion
    converted = Column(Boolean, default=False, nullable=False)
    conversion_value = Column(Float, nullable=True)
    commission_earned = Column(Float, nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)


class CommissionRecordRow(Base):
    """Commission owed for one conversion. ``click_id`` is not a foreign key:
    conversions for unknown clicks are kept."""
    __tablename__ = "commission_records"

    id = Column(String(36), primary_key=True)
    click_id = Column(String(36), nullable=False, index=True)
    vendor = Column(String(32), nullable=False, index=True)
    external_product_id = Column(String(200), nullable=False)
    external_order_id = Column(String(200), nullable=False)
    order_value = Column(Float, nullable=False)
    rate_kind = Column(String(16), nullable=False)
    commission_rate = Column(Float, nullable=False)
    commission_earned = Column(Float, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    conversion_date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    approved_date = Column(DateTime(timezone=True), nullable=True)
    rejected_date = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    # Attribution
    utm_source = Column(String(200), nullable=True)
    utm_medium = Column(String(200), nullable=True)
    utm_campaign = Column(String(200), nullable=True)
    content_ref = Column(String(200), nullable=True, index=True)
    user_id = Column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint("vendor", "external_order_id", name="uq_commission_vendor_order"),
        Index("idx_commission_status_date", "status", "conversion_date"),
    )


class CommissionAlertRow(Base):
    __tablename__ = "commission_alerts"

    id = Column(String(36), primary_key=True)
    type = Column(String(32), nullable=False, default="high_commission")
    commission_id = Column(String(36), nullable=False, index=True)
    vendor = Column(String(32), nullable=False)
    amount = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class InventoryItemRow(Base):
    """Latest known state of a vendor product; one row per (vendor, product)."""
    __tablename__ = "inventory_items"

    vendor_product_id = Column(String(250), primary_key=True)  # "{vendor}_{product_id}"
    vendor = Column(String(32), nullable=False, index=True)
    product_id = Column(String(200), nullable=False)
    name = Column(String(500), nullable=False)
    price = Column(Float, nullable=False)
    original_price = Column(Float, nullable=True)
    availability = Column(String(16), nullable=False, index=True)
    stock_quantity = Column(Integer, nullable=True)
    affiliate_link = Column(String(2000), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class PriceAlertRow(Base):
    """Append-only log of price and stock changes."""
    __tablename__ = "price_alerts"

    id = Column(String(36), primary_key=True)
    product_id = Column(String(200), nullable=False, index=True)
    vendor = Column(String(32), nullable=False)
    old_price = Column(Float, nullable=True)
    new_price = Column(Float, nullable=False)
    discount_percentage = Column(Float, nullable=False, default=0.0)
    alert_type = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class RecommendationCacheRow(Base):
    __tablename__ = "recommendation_cache"

    cache_key = Column(String(300), primary_key=True)
    content_ref = Column(String(200), nullable=False, index=True)
    items = Column(JSON, default=list)  # list[scored item dict]
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)


class ContentItemRow(Base):
    """Read-only mirror of the site's tripkits/destinations."""
    __tablename__ = "content_items"

    id = Column(String(200), primary_key=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, default=list)
