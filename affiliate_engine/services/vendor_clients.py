"""
Vendor catalog access for the inventory monitor.
---
Each vendor exposes a quote endpoint returning the current price and
availability of one product. ``HttpVendorCatalog`` queries them with httpx
and builds the affiliate link for the product from our partner ids.

Quote endpoint contract (one per vendor, ``VENDOR_API_BASE_<VENDOR>``):

    GET {base}/products/{product_id}
    → {"price": 89.0, "original_price": 99.0,
       "availability": "in_stock", "stock_quantity": 12}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

import httpx

from affiliate_engine.errors import VendorFetchFailure
from affiliate_engine.models import Availability, Vendor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedProduct:
    vendor: Vendor
    product_id: str
    name: str
    category: str
    location: str = ""


@dataclass(frozen=True)
class VendorQuote:
    price: float
    availability: Availability
    affiliate_link: str
    original_price: Optional[float] = None
    stock_quantity: Optional[int] = None


class VendorCatalog(Protocol):
    def tracked_products(self) -> list[TrackedProduct]: ...

    async def fetch(self, product: TrackedProduct) -> VendorQuote: ...


# ── Affiliate link builders ──────────────────────────────────────────────────

def build_affiliate_link(vendor: Vendor, product_id: str, settings, location: str = "") -> str:
    if vendor is Vendor.AMAZON:
        return f"https://www.amazon.com/dp/{product_id}/?tag={settings.AMAZON_ASSOCIATES_TAG}"
    if vendor is Vendor.VIATOR:
        return f"https://www.viator.com/tours/{product_id}?pid={settings.VIATOR_AFFILIATE_ID}"
    if vendor is Vendor.GOLFNOW:
        return (
            f"https://www.golfnow.com/tee-times/facility/{product_id}/search"
            f"?pid={settings.GOLFNOW_PARTNER_ID}"
        )
    if vendor is Vendor.TURO:
        where = quote(location or "Salt Lake City")
        return f"https://turo.com/search?location={where}&aff={settings.TURO_AFFILIATE_ID}"
    # AWIN deep links are issued per merchant; the quote endpoint returns them
    return ""


# ── HTTP catalog ─────────────────────────────────────────────────────────────

_CREDENTIALS = {
    Vendor.AMAZON: "AMAZON_ASSOCIATES_TAG",
    Vendor.VIATOR: "VIATOR_API_KEY",
    Vendor.GOLFNOW: "GOLFNOW_API_USERNAME",
    Vendor.TURO: "TURO_AFFILIATE_ID",
    Vendor.AWIN: "AWIN_API_KEY",
}


class HttpVendorCatalog:
    """Polls vendor quote endpoints over HTTP.

    Vendors without credentials are left out of ``tracked_products()``.
    """

    def __init__(
        self,
        products: list[TrackedProduct],
        settings,
        client: httpx.AsyncClient | None = None,
    ):
        self.products = products
        self.settings = settings
        self._client = client

    def enabled_vendors(self) -> set[Vendor]:
        enabled = set()
        for vendor, key in _CREDENTIALS.items():
            if getattr(self.settings, key, ""):
                enabled.add(vendor)
            else:
                logger.info(f"{vendor.value} credentials not configured, skipping {vendor.value} sync")
        return enabled

    def tracked_products(self) -> list[TrackedProduct]:
        enabled = self.enabled_vendors()
        return [p for p in self.products if p.vendor in enabled]

    def _request_auth(self, vendor: Vendor) -> tuple[dict, dict]:
        """(headers, params) for a vendor's quote request."""
        s = self.settings
        if vendor is Vendor.VIATOR:
            return {"exp-api-key": s.VIATOR_API_KEY}, {}
        if vendor is Vendor.AWIN:
            return {"Authorization": f"Bearer {s.AWIN_API_KEY}"}, {}
        if vendor is Vendor.GOLFNOW:
            return {}, {"username": s.GOLFNOW_API_USERNAME}
        if vendor is Vendor.AMAZON:
            return {}, {"tag": s.AMAZON_ASSOCIATES_TAG}
        return {}, {"aff": s.TURO_AFFILIATE_ID}

    async def fetch(self, product: TrackedProduct) -> VendorQuote:
        vendor = product.vendor
        base = getattr(self.settings, f"VENDOR_API_BASE_{vendor.name}", "")
        if not base:
            raise VendorFetchFailure(vendor.value, product.product_id, "no quote endpoint configured")

        url = f"{base.rstrip('/')}/products/{quote(product.product_id, safe='')}"
        headers, params = self._request_auth(vendor)
        try:
            if self._client is not None:
                resp = await self._client.get(url, headers=headers, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.settings.VENDOR_FETCH_TIMEOUT_SECONDS) as client:
                    resp = await client.get(url, headers=headers, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise VendorFetchFailure(vendor.value, product.product_id, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise VendorFetchFailure(vendor.value, product.product_id, str(e) or type(e).__name__) from e

        return parse_quote(data, product, self.settings)


def parse_quote(data: dict, product: TrackedProduct, settings) -> VendorQuote:
    try:
        price = float(data["price"])
        availability = Availability(data.get("availability", "in_stock"))
    except (KeyError, TypeError, ValueError) as e:
        raise VendorFetchFailure(product.vendor.value, product.product_id, f"bad quote: {e}") from e

    original = data.get("original_price")
    stock = data.get("stock_quantity")
    link = data.get("affiliate_link") or build_affiliate_link(
        product.vendor, product.product_id, settings, product.location
    )
    return VendorQuote(
        price=price,
        availability=availability,
        affiliate_link=link,
        original_price=float(original) if original is not None else None,
        stock_quantity=int(stock) if stock is not None else None,
    )
