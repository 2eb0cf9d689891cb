"""
Inventory Monitor
---
Polls vendor catalogs for the current price and availability of every
tracked product, keeps one snapshot per (vendor, product), and raises price
and stock alerts by diffing each new snapshot against the previous one.

Two cycle modes:
- FULL         - every tracked product (every 30 min by default)
- PRICE_CHECK  - only products already in inventory and not discontinued
                 (every 15 min by default)

Vendor calls share one semaphore (5 in flight by default). A vendor whose
previous cycle is still running is skipped rather than polled twice.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from affiliate_engine.db.ports import InventoryStore
from affiliate_engine.errors import VendorFetchFailure
from affiliate_engine.models import (
    AlertType,
    Availability,
    InventorySnapshot,
    PriceAlert,
    Vendor,
)
from affiliate_engine.services.notifications import AlertSink, LogAlertSink
from affiliate_engine.services.vendor_clients import TrackedProduct, VendorCatalog

logger = logging.getLogger(__name__)


class SyncMode(str, Enum):
    FULL = "full"
    PRICE_CHECK = "price_check"


@dataclass
class SyncResult:
    """Outcome of one vendor's poll within a cycle."""
    vendor: str
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    alerts: int = 0
    skipped: bool = False
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "vendor": self.vendor,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "alerts": self.alerts,
            "skipped": self.skipped,
            "errors": self.errors[:10],
        }


@dataclass
class CycleResult:
    mode: SyncMode
    started_at: datetime
    finished_at: Optional[datetime] = None
    vendors: dict[str, SyncResult] = field(default_factory=dict)
    stopped: bool = False

    @property
    def processed(self) -> int:
        return sum(r.processed for r in self.vendors.values())

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.vendors.values())

    @property
    def alerts(self) -> int:
        return sum(r.alerts for r in self.vendors.values())

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": self.processed,
            "failed": self.failed,
            "alerts": self.alerts,
            "stopped": self.stopped,
            "vendors": {v: r.to_dict() for v, r in self.vendors.items()},
        }


# ── Snapshot diff ────────────────────────────────────────────────────────────

def diff_snapshots(
    previous: Optional[InventorySnapshot],
    current: InventorySnapshot,
    threshold: float = 10.0,
    now: Optional[datetime] = None,
) -> list[PriceAlert]:
    """Alerts raised by moving from ``previous`` to ``current``.

    - price_drop / price_increase when the price moved by at least
      ``threshold`` percent of the previous price
    - low_stock / out_of_stock when availability enters that state
      (a first sighting counts as entering it)
    - back_in_stock when an out_of_stock or discontinued product is in stock
    """
    now = now or datetime.now(timezone.utc)
    alerts: list[PriceAlert] = []
    old_price = previous.price if previous else None

    def _alert(alert_type: AlertType, discount: float = 0.0) -> PriceAlert:
        return PriceAlert(
            id=str(uuid.uuid4()),
            product_id=current.product_id,
            vendor=current.vendor,
            old_price=old_price,
            new_price=current.price,
            discount_percentage=discount,
            alert_type=alert_type,
            created_at=now,
        )

    if previous is not None and previous.price > 0 and current.price != previous.price:
        change = (previous.price - current.price) / previous.price * 100
        if abs(change) >= threshold:
            alert_type = AlertType.PRICE_DROP if change > 0 else AlertType.PRICE_INCREASE
            alerts.append(_alert(alert_type, round(abs(change), 2)))

    stock_alerts = {
        Availability.LOW_STOCK: AlertType.LOW_STOCK,
        Availability.OUT_OF_STOCK: AlertType.OUT_OF_STOCK,
    }
    entered = previous is None or previous.availability != current.availability
    if current.availability in stock_alerts and entered:
        alerts.append(_alert(stock_alerts[current.availability]))

    if (
        previous is not None
        and previous.availability in (Availability.OUT_OF_STOCK, Availability.DISCONTINUED)
        and current.availability is Availability.IN_STOCK
    ):
        alerts.append(_alert(AlertType.BACK_IN_STOCK))

    return alerts


# ── Monitor ──────────────────────────────────────────────────────────────────

class InventoryMonitor:
    def __init__(
        self,
        store: InventoryStore,
        catalog: VendorCatalog,
        alert_sink: AlertSink | None = None,
        concurrency: int = 5,
        fetch_timeout: float = 8.0,
        price_threshold: float = 10.0,
    ):
        self.store = store
        self.catalog = catalog
        self.alert_sink = alert_sink or LogAlertSink()
        self.fetch_timeout = fetch_timeout
        self.price_threshold = price_threshold
        self._semaphore = asyncio.Semaphore(concurrency)
        self._vendor_locks: dict[Vendor, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._stop_requested = False
        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    # ── Lifecycle ────────────────────────────────────────────────────────────

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        """Let the in-flight vendor batch finish, then start nothing new."""
        if not self._stop_requested:
            logger.info("Inventory monitor stop requested")
        self._stop_requested = True

    def resume(self) -> None:
        self._stop_requested = False

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._idle.wait(), timeout)

    # ── Cycles ───────────────────────────────────────────────────────────────

    async def run_cycle(
        self,
        mode: SyncMode = SyncMode.FULL,
        vendors: Optional[Iterable[Vendor]] = None,
    ) -> CycleResult:
        result = CycleResult(mode=mode, started_at=datetime.now(timezone.utc))
        if self._stop_requested:
            result.stopped = True
            result.finished_at = result.started_at
            return result

        self._active += 1
        self._idle.clear()
        try:
            wanted = set(vendors) if vendors is not None else None
            grouped: dict[Vendor, list[TrackedProduct]] = {}
            for product in self.catalog.tracked_products():
                if wanted is None or product.vendor in wanted:
                    grouped.setdefault(product.vendor, []).append(product)

            logger.info(f"🔄 Inventory {mode.value} cycle: {len(grouped)} vendors")
            for vendor, products in grouped.items():
                if self._stop_requested:
                    result.stopped = True
                    break
                result.vendors[vendor.value] = await self._sync_vendor(vendor, products, mode)
        finally:
            self._active -= 1
            if self._active == 0:
                self._idle.set()

        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"✅ Inventory {mode.value} cycle done: {result.processed} polled, "
            f"{result.failed} failed, {result.alerts} alerts"
        )
        return result

    async def _sync_vendor(
        self, vendor: Vendor, products: list[TrackedProduct], mode: SyncMode
    ) -> SyncResult:
        result = SyncResult(vendor=vendor.value)
        lock = self._vendor_locks[vendor]
        if lock.locked():
            logger.warning(f"{vendor.value} sync still running, skipping this cycle")
            result.skipped = True
            return result

        async with lock:
            if mode is SyncMode.PRICE_CHECK:
                known = {
                    s.product_id: s
                    for s in await self.store.list_snapshots(vendor=vendor)
                    if s.availability is not Availability.DISCONTINUED
                }
                products = [p for p in products if p.product_id in known]

            await asyncio.gather(*(self._poll_product(p, result) for p in products))
        return result

    async def _poll_product(self, product: TrackedProduct, result: SyncResult) -> None:
        result.processed += 1
        try:
            async with self._semaphore:
                quote = await self._fetch(product)
            previous = await self.store.get_snapshot(product.vendor, product.product_id)
            current = InventorySnapshot(
                vendor=product.vendor,
                product_id=product.product_id,
                name=product.name,
                price=quote.price,
                availability=quote.availability,
                affiliate_link=quote.affiliate_link,
                category=product.category,
                last_updated=datetime.now(timezone.utc),
                original_price=quote.original_price,
                stock_quantity=quote.stock_quantity,
            )
            await self.store.upsert_snapshot(current)
        except Exception as e:
            result.failed += 1
            result.errors.append(str(e))
            logger.warning(f"Inventory poll failed for {product.vendor.value}/{product.product_id}: {e}")
            return

        result.succeeded += 1
        for alert in diff_snapshots(previous, current, self.price_threshold):
            await self._emit(alert)
            result.alerts += 1

    async def _fetch(self, product: TrackedProduct):
        try:
            return await asyncio.wait_for(self.catalog.fetch(product), self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise VendorFetchFailure(
                product.vendor.value, product.product_id, f"timed out after {self.fetch_timeout}s"
            ) from e

    async def _emit(self, alert: PriceAlert) -> None:
        try:
            await self.store.insert_price_alert(alert)
        except Exception as e:
            logger.error(f"Price alert for {alert.vendor.value}/{alert.product_id} not stored: {e}")
            return
        try:
            await self.alert_sink.send_alert(alert)
        except Exception as e:
            logger.warning(f"Price alert delivery failed: {e}")

    # ── Reads ────────────────────────────────────────────────────────────────

    async def inventory(
        self, vendor: Optional[Vendor] = None, category: Optional[str] = None
    ) -> list[InventorySnapshot]:
        return await self.store.list_snapshots(vendor=vendor, category=category)

    async def snapshot(self, vendor: Vendor, product_id: str) -> Optional[InventorySnapshot]:
        return await self.store.get_snapshot(vendor, product_id)

    async def low_stock_items(self) -> list[InventorySnapshot]:
        low = await self.store.list_snapshots(availability=Availability.LOW_STOCK)
        out = await self.store.list_snapshots(availability=Availability.OUT_OF_STOCK)
        return low + out

    async def price_alerts(self, limit: int = 10) -> list[PriceAlert]:
        return await self.store.recent_price_alerts(limit)
