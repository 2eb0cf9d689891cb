"""In-memory stand-ins for storage, vendor catalogs and alert delivery."""
from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Optional

from affiliate_engine.errors import StorageUnavailable
from affiliate_engine.models import (
    Availability,
    Click,
    CommissionAlert,
    CommissionRecord,
    CommissionStatus,
    Content,
    InventorySnapshot,
    PriceAlert,
    Vendor,
    snapshot_id,
)
from affiliate_engine.services.vendor_clients import TrackedProduct, VendorQuote


class InMemoryAffiliateStore:
    """Implements every store port plus ContentSource.

    ``down`` makes every call raise StorageUnavailable; ``failing`` names
    individual methods that should raise (a count per method).
    """

    def __init__(self):
        self.clicks: dict[str, Click] = {}
        self.commissions: dict[str, CommissionRecord] = {}
        self.commission_alerts: list[CommissionAlert] = []
        self.snapshots: dict[str, InventorySnapshot] = {}
        self.price_alerts: list[PriceAlert] = []
        self.cache: dict[str, tuple[str, list[dict], datetime]] = {}
        self.content: dict[str, Content] = {}
        self.down = False
        self.failing: dict[str, int] = {}
        self.calls: dict[str, int] = {}

    def _check(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.down:
            raise StorageUnavailable("store is down")
        remaining = self.failing.get(name, 0)
        if remaining:
            self.failing[name] = remaining - 1
            raise StorageUnavailable(f"{name} failed")

    # ── Clicks ───────────────────────────────────────────────────────────────

    async def insert_click(self, click: Click) -> None:
        self._check("insert_click")
        self.clicks[click.id] = dataclasses.replace(click)

    async def get_click(self, click_id: str) -> Optional[Click]:
        self._check("get_click")
        click = self.clicks.get(click_id)
        return dataclasses.replace(click) if click else None

    async def mark_click_converted(self, click_id, conversion_value, commission_earned, converted_at) -> bool:
        self._check("mark_click_converted")
        click = self.clicks.get(click_id)
        if click is None or click.converted:
            return False
        click.converted = True
        click.conversion_value = conversion_value
        click.commission_earned = commission_earned
        click.converted_at = converted_at
        return True

    async def clicks_since(self, since: datetime) -> list[Click]:
        self._check("clicks_since")
        return [dataclasses.replace(c) for c in self.clicks.values() if c.created_at >= since]

    # ── Commissions ──────────────────────────────────────────────────────────

    async def insert_commission(self, record: CommissionRecord) -> bool:
        self._check("insert_commission")
        for existing in self.commissions.values():
            if (existing.vendor, existing.external_order_id) == (record.vendor, record.external_order_id):
                return False
        self.commissions[record.id] = dataclasses.replace(record)
        return True

    async def get_commission(self, commission_id: str) -> Optional[CommissionRecord]:
        self._check("get_commission")
        record = self.commissions.get(commission_id)
        return dataclasses.replace(record) if record else None

    async def find_commission_by_order(self, vendor: str, external_order_id: str):
        self._check("find_commission_by_order")
        for record in self.commissions.values():
            if record.vendor == vendor and record.external_order_id == external_order_id:
                return dataclasses.replace(record)
        return None

    async def transition_commission(self, commission_id, expected, new, changes) -> bool:
        self._check("transition_commission")
        record = self.commissions.get(commission_id)
        if record is None or record.status is not expected:
            return False
        self.commissions[commission_id] = dataclasses.replace(record, status=new, **changes)
        return True

    async def list_commissions(
        self,
        status: Optional[CommissionStatus] = None,
        vendor: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[CommissionRecord]:
        self._check("list_commissions")
        records = [
            dataclasses.replace(r)
            for r in self.commissions.values()
            if (status is None or r.status is status)
            and (vendor is None or r.vendor == vendor)
            and (since is None or r.conversion_date >= since)
        ]
        records.sort(key=lambda r: r.conversion_date, reverse=True)
        return records[:limit] if limit is not None else records

    async def insert_commission_alert(self, alert: CommissionAlert) -> None:
        self._check("insert_commission_alert")
        self.commission_alerts.append(alert)

    # ── Inventory ────────────────────────────────────────────────────────────

    async def get_snapshot(self, vendor: Vendor, product_id: str) -> Optional[InventorySnapshot]:
        self._check("get_snapshot")
        snap = self.snapshots.get(snapshot_id(vendor, product_id))
        return dataclasses.replace(snap) if snap else None

    async def upsert_snapshot(self, snapshot: InventorySnapshot) -> None:
        self._check("upsert_snapshot")
        self.snapshots[snapshot.id] = dataclasses.replace(snapshot)

    async def list_snapshots(
        self,
        vendor: Optional[Vendor] = None,
        category: Optional[str] = None,
        availability: Optional[Availability] = None,
    ) -> list[InventorySnapshot]:
        self._check("list_snapshots")
        return [
            dataclasses.replace(s)
            for s in self.snapshots.values()
            if (vendor is None or s.vendor is vendor)
            and (category is None or s.category == category)
            and (availability is None or s.availability is availability)
        ]

    async def insert_price_alert(self, alert: PriceAlert) -> None:
        self._check("insert_price_alert")
        self.price_alerts.append(alert)

    async def recent_price_alerts(self, limit: int = 10) -> list[PriceAlert]:
        self._check("recent_price_alerts")
        return sorted(self.price_alerts, key=lambda a: a.created_at, reverse=True)[:limit]

    # ── Recommendation cache & content ───────────────────────────────────────

    async def get_cached_recommendations(self, cache_key: str, now: datetime):
        self._check("get_cached_recommendations")
        entry = self.cache.get(cache_key)
        if entry is None or entry[2] <= now:
            return None
        return list(entry[1])

    async def put_cached_recommendations(self, cache_key, content_ref, items, expires_at) -> None:
        self._check("put_cached_recommendations")
        self.cache[cache_key] = (content_ref, list(items), expires_at)

    async def get_content(self, content_ref: str) -> Optional[Content]:
        self._check("get_content")
        return self.content.get(content_ref)


class FakeCatalog:
    """VendorCatalog returning scripted quotes.

    ``quotes[(vendor, product_id)]`` is a VendorQuote or an exception to raise.
    ``delay`` slows every fetch so tests can observe concurrency.
    """

    def __init__(self, products: list[TrackedProduct], delay: float = 0.0):
        self.products = products
        self.quotes: dict[tuple[Vendor, str], object] = {}
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.fetched: list[tuple[Vendor, str]] = []

    def set_quote(self, vendor: Vendor, product_id: str, price: float,
                  availability: Availability = Availability.IN_STOCK, **kwargs) -> None:
        self.quotes[(vendor, product_id)] = VendorQuote(
            price=price,
            availability=availability,
            affiliate_link=kwargs.pop("affiliate_link", f"https://example.com/{vendor.value}/{product_id}"),
            **kwargs,
        )

    def tracked_products(self) -> list[TrackedProduct]:
        return list(self.products)

    async def fetch(self, product: TrackedProduct) -> VendorQuote:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.fetched.append((product.vendor, product.product_id))
            quote = self.quotes.get((product.vendor, product.product_id))
            if isinstance(quote, BaseException):
                raise quote
            if quote is None:
                raise KeyError(f"no quote for {product.product_id}")
            return quote
        finally:
            self.in_flight -= 1


class RecordingAlertSink:
    def __init__(self, fail: bool = False):
        self.sent: list = []
        self.fail = fail

    async def send_alert(self, alert) -> None:
        if self.fail:
            raise ConnectionError("webhook unreachable")
        self.sent.append(alert)
