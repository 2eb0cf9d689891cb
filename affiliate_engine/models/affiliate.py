"""Affiliate domain records - clicks, commissions, inventory, recommendations."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from affiliate_engine.errors import UnknownVendor


class Vendor(str, Enum):
    VIATOR = "viator"  # guided tours and activities
    GOLFNOW = "golfnow"  # tee times
    TURO = "turo"  # car rental, flat referral fee
    AMAZON = "amazon"  # gear
    AWIN = "awin"  # network of outdoor retailers

    @classmethod
    def parse(cls, value: "str | Vendor") -> "Vendor":
        """Resolve a vendor slug, raising UnknownVendor outside the closed set."""
        if isinstance(value, Vendor):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise UnknownVendor(str(value)) from None


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"  # terminal
    PAID = "paid"  # terminal


class Availability(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class AlertType(str, Enum):
    PRICE_DROP = "price_drop"
    PRICE_INCREASE = "price_increase"
    BACK_IN_STOCK = "back_in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class ProductKind(str, Enum):
    GEAR = "gear"
    ACTIVITY = "activity"
    TRANSPORTATION = "transportation"


class Timeframe(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def days(self) -> int:
        return _TIMEFRAME_DAYS[self]


_TIMEFRAME_DAYS = {
    Timeframe.DAY: 1,
    Timeframe.WEEK: 7,
    Timeframe.MONTH: 30,
    Timeframe.QUARTER: 90,
    Timeframe.YEAR: 365,
}


# ── Click attribution ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClientContext:
    """Who clicked: taken from the outbound request."""
    user_agent: str = ""
    ip_address: str = ""
    referrer: str = ""


@dataclass(frozen=True)
class CampaignContext:
    """UTM parameters carried by the link."""
    source: Optional[str] = None
    medium: Optional[str] = None
    campaign: Optional[str] = None


@dataclass(frozen=True)
class AttributionContext:
    """Attribution data reported alongside a conversion."""
    campaign: CampaignContext = field(default_factory=CampaignContext)
    content_ref: Optional[str] = None  # tripkit / destination id
    user_id: Optional[str] = None


@dataclass
class Click:
    """A recorded activation of an outbound affiliate link.

    Immutable except for the conversion fields, which are set once by the
    commission ledger when the first matching conversion arrives.
    """
    id: str
    vendor: Vendor
    target_url: str
    client: ClientContext
    campaign: CampaignContext
    session_id: str
    created_at: datetime
    content_ref: Optional[str] = None
    converted: bool = False
    conversion_value: Optional[float] = None
    commission_earned: Optional[float] = None
    converted_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor": self.vendor.value,
            "target_url": self.target_url,
            "content_ref": self.content_ref,
            "user_agent": self.client.user_agent,
            "ip_address": self.client.ip_address,
            "referrer": self.client.referrer,
            "utm_source": self.campaign.source,
            "utm_medium": self.campaign.medium,
            "utm_campaign": self.campaign.campaign,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "converted": self.converted,
            "conversion_value": self.conversion_value,
            "commission_earned": self.commission_earned,
        }


# ── Commissions ──────────────────────────────────────────────────────────────

@dataclass
class CommissionRecord:
    """Earned revenue share for one conversion.

    ``commission_earned`` is fixed at creation; later rate changes never
    touch historical records.
    """
    id: str
    click_id: str
    vendor: str  # raw slug; unknown vendors are recorded at the default rate
    external_product_id: str
    external_order_id: str
    order_value: float
    rate_kind: str
    commission_rate: float
    commission_earned: float
    status: CommissionStatus
    conversion_date: datetime
    attribution: AttributionContext = field(default_factory=AttributionContext)
    approved_date: Optional[datetime] = None
    rejected_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    payment_date: Optional[datetime] = None

    @property
    def content_ref(self) -> Optional[str]:
        return self.attribution.content_ref

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "click_id": self.click_id,
            "vendor": self.vendor,
            "product_id": self.external_product_id,
            "order_id": self.external_order_id,
            "order_value": self.order_value,
            "rate_kind": self.rate_kind,
            "commission_rate": self.commission_rate,
            "commission_earned": round(self.commission_earned, 2),
            "status": self.status.value,
            "conversion_date": self.conversion_date.isoformat(),
            "approved_date": _iso(self.approved_date),
            "rejected_date": _iso(self.rejected_date),
            "rejection_reason": self.rejection_reason,
            "payment_date": _iso(self.payment_date),
            "utm_source": self.attribution.campaign.source,
            "utm_medium": self.attribution.campaign.medium,
            "utm_campaign": self.attribution.campaign.campaign,
            "content_ref": self.attribution.content_ref,
            "user_id": self.attribution.user_id,
        }


@dataclass(frozen=True)
class CommissionAlert:
    """High-value commission notice. Append-only."""
    id: str
    commission_id: str
    vendor: str
    amount: float
    created_at: datetime
    type: str = "high_commission"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "commission_id": self.commission_id,
            "vendor": self.vendor,
            "amount": round(self.amount, 2),
            "created_at": self.created_at.isoformat(),
        }


# ── Inventory ────────────────────────────────────────────────────────────────

@dataclass
class InventorySnapshot:
    """Most recently polled price/availability of one vendor product."""
    vendor: Vendor
    product_id: str
    name: str
    price: float
    availability: Availability
    affiliate_link: str
    category: str
    last_updated: datetime
    original_price: Optional[float] = None
    stock_quantity: Optional[int] = None

    @property
    def id(self) -> str:
        return snapshot_id(self.vendor, self.product_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor": self.vendor.value,
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "original_price": self.original_price,
            "availability": self.availability.value,
            "stock_quantity": self.stock_quantity,
            "affiliate_link": self.affiliate_link,
            "category": self.category,
            "last_updated": self.last_updated.isoformat(),
        }


def snapshot_id(vendor: Vendor, product_id: str) -> str:
    return f"{vendor.value}_{product_id}"


@dataclass(frozen=True)
class PriceAlert:
    """A qualifying price or stock change. Append-only."""
    id: str
    product_id: str
    vendor: Vendor
    old_price: Optional[float]
    new_price: float
    discount_percentage: float
    alert_type: AlertType
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "vendor": self.vendor.value,
            "old_price": self.old_price,
            "new_price": self.new_price,
            "discount_percentage": self.discount_percentage,
            "alert_type": self.alert_type.value,
            "created_at": self.created_at.isoformat(),
        }


# ── Content & recommendations ────────────────────────────────────────────────

@dataclass(frozen=True)
class Content:
    """A tripkit or destination as seen by the relevance scorer."""
    content_ref: str
    title: str
    description: str = ""
    tags: tuple[str, ...] = ()

    def text(self) -> str:
        return f"{self.title} {self.description} {' '.join(self.tags)}"


@dataclass(frozen=True)
class CandidateProduct:
    """A gear item, activity or rental that can be recommended."""
    product_id: str
    vendor: Vendor
    name: str
    kind: ProductKind
    categories: tuple[str, ...]  # activity taxonomy tags, e.g. ("hiking",)
    description: str = ""
    price: Optional[float] = None  # list price, used for budget fit
    seasons: tuple[str, ...] = ()
    local: bool = True  # specific to the publisher's region
    gear_type: Optional[str] = None  # footwear, backpack, ...
    rating: Optional[float] = None
    location: str = ""


@dataclass(frozen=True)
class RecommendationItem:
    source_category: str
    candidate: CandidateProduct
    relevance_score: float


@dataclass(frozen=True)
class AffiliateLink:
    """A purchasable recommendation joined with live inventory."""
    product_id: str
    vendor: Vendor
    kind: ProductKind
    title: str
    description: str
    price: float
    original_price: Optional[float]
    affiliate_url: str
    availability: Availability
    relevance_score: float
    category: str

    def to_dict(self) -> dict:
        return {
            "id": self.product_id,
            "vendor": self.vendor.value,
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "original_price": self.original_price,
            "affiliate_url": self.affiliate_url,
            "availability": self.availability.value,
            "relevance_score": self.relevance_score,
            "category": self.category,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
