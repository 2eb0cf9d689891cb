"""
Affiliate Manager - the one place the engine's parts meet.
---
Recommendations are the only flow that joins relevance scores with live
inventory: a product is shown only if its current snapshot says it is in
stock, and always with the snapshot's price.
"""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from affiliate_engine.db.ports import ContentSource, RecommendationCacheStore
from affiliate_engine.models import (
    AffiliateLink,
    AttributionContext,
    Availability,
    CampaignContext,
    CandidateProduct,
    ClientContext,
    CommissionStatus,
    RecommendationItem,
    Timeframe,
    Vendor,
)
from affiliate_engine.services import relevance
from affiliate_engine.services.catalog import DEFAULT_CANDIDATES, find_candidate, tracked_products
from affiliate_engine.services.click_recorder import ClickRecorder
from affiliate_engine.services.commission_ledger import CommissionLedger
from affiliate_engine.services.inventory_monitor import CycleResult, InventoryMonitor, SyncMode
from affiliate_engine.services.notifications import sink_from_settings
from affiliate_engine.services.rates import RateTable, RateTableHolder, estimate_potential_commission
from affiliate_engine.services.revenue import RevenueReport, RevenueReporter
from affiliate_engine.services.vendor_clients import HttpVendorCatalog

logger = logging.getLogger(__name__)


def preferences_key(preferences: Optional[dict]) -> str:
    raw = json.dumps(preferences or {}, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


class AffiliateManager:
    def __init__(
        self,
        clicks: ClickRecorder,
        ledger: CommissionLedger,
        monitor: InventoryMonitor,
        reporter: RevenueReporter,
        content: ContentSource,
        cache: RecommendationCacheStore,
        rates: RateTableHolder,
        candidates: Iterable[CandidateProduct] = DEFAULT_CANDIDATES,
        cache_days: int = 7,
        clock: Callable[[], datetime] | None = None,
    ):
        self.clicks = clicks
        self.ledger = ledger
        self.monitor = monitor
        self.reporter = reporter
        self.content = content
        self.cache = cache
        self.rates = rates
        self.candidates = tuple(candidates)
        self.cache_days = cache_days
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, session_factory, settings=None) -> "AffiliateManager":
        """Production wiring: SQL storage, HTTP vendor catalog, configured alerts."""
        from affiliate_engine.db.repository import AffiliateRepository

        if settings is None:
            from config.settings import settings

        repo = AffiliateRepository(session_factory)
        sink = sink_from_settings(settings)
        rates = RateTableHolder(RateTable.from_settings(settings))
        catalog = HttpVendorCatalog(tracked_products(), settings)
        return cls(
            clicks=ClickRecorder(repo),
            ledger=CommissionLedger(
                repo,
                repo,
                rates,
                alert_sink=sink,
                high_value_threshold=settings.HIGH_VALUE_COMMISSION_THRESHOLD,
                click_update_attempts=settings.CLICK_UPDATE_ATTEMPTS,
            ),
            monitor=InventoryMonitor(
                repo,
                catalog,
                alert_sink=sink,
                concurrency=settings.INVENTORY_CONCURRENCY,
                fetch_timeout=settings.VENDOR_FETCH_TIMEOUT_SECONDS,
                price_threshold=settings.PRICE_ALERT_THRESHOLD_PCT,
            ),
            reporter=RevenueReporter(repo, repo),
            content=repo,
            cache=repo,
            rates=rates,
            cache_days=settings.RECOMMENDATION_CACHE_DAYS,
        )

    # ── Recommendations ──────────────────────────────────────────────────────

    async def recommendations_for(
        self, content_ref: str, preferences: Optional[dict] = None
    ) -> list[AffiliateLink]:
        """Purchasable, in-stock recommendations for a tripkit, best first.

        Never raises: any failure is logged and yields an empty list.
        """
        try:
            items = await self._scored_items(content_ref, preferences)
            links = []
            for item in items:
                candidate = item.candidate
                snap = await self.monitor.snapshot(candidate.vendor, candidate.product_id)
                if snap is None or snap.availability is not Availability.IN_STOCK:
                    continue
                links.append(AffiliateLink(
                    product_id=candidate.product_id,
                    vendor=candidate.vendor,
                    kind=candidate.kind,
                    title=candidate.name,
                    description=candidate.description,
                    price=snap.price,
                    original_price=snap.original_price,
                    affiliate_url=snap.affiliate_link,
                    availability=snap.availability,
                    relevance_score=item.relevance_score,
                    category=item.source_category,
                ))
            links.sort(key=lambda link: link.relevance_score, reverse=True)
            return links
        except Exception:
            logger.exception(f"Recommendations for {content_ref} failed")
            return []

    async def recommendation_summary(
        self, content_ref: str, preferences: Optional[dict] = None
    ) -> dict:
        links = await self.recommendations_for(content_ref, preferences)
        return {
            "content_id": content_ref,
            "recommendations": [link.to_dict() for link in links],
            "total": len(links),
            "potential_commission": estimate_potential_commission(links, self.rates.current()),
        }

    async def _scored_items(
        self, content_ref: str, preferences: Optional[dict]
    ) -> list[RecommendationItem]:
        cache_key = f"{content_ref}:{preferences_key(preferences)}"
        now = self.clock()
        try:
            cached = await self.cache.get_cached_recommendations(cache_key, now)
        except Exception as e:
            logger.warning(f"Recommendation cache read failed: {e}")
            cached = None
        if cached is not None:
            return self._items_from_cache(cached)

        content = await self.content.get_content(content_ref)
        if content is None:
            logger.info(f"No content {content_ref}, no recommendations")
            return []

        items = relevance.score(content, self.candidates, preferences)
        try:
            await self.cache.put_cached_recommendations(
                cache_key,
                content_ref,
                [
                    {
                        "vendor": i.candidate.vendor.value,
                        "product_id": i.candidate.product_id,
                        "source_category": i.source_category,
                        "relevance_score": i.relevance_score,
                    }
                    for i in items
                ],
                now + timedelta(days=self.cache_days),
            )
        except Exception as e:
            logger.warning(f"Recommendation cache write failed: {e}")
        return items

    def _items_from_cache(self, cached: list[dict]) -> list[RecommendationItem]:
        items = []
        for entry in cached:
            try:
                vendor = Vendor(entry["vendor"])
            except (KeyError, ValueError):
                continue
            candidate = find_candidate(vendor, entry.get("product_id"), self.candidates)
            if candidate is None:
                continue
            items.append(RecommendationItem(
                source_category=entry.get("source_category", ""),
                candidate=candidate,
                relevance_score=float(entry.get("relevance_score", 0.0)),
            ))
        return items

    # ── Clicks & conversions ─────────────────────────────────────────────────

    async def track_click(
        self,
        vendor: str,
        target_url: str,
        client: ClientContext | None = None,
        campaign: CampaignContext | None = None,
        content_ref: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        return await self.clicks.record_click(
            vendor, target_url, client, campaign, content_ref=content_ref, session_id=session_id
        )

    async def track_conversion(
        self,
        click_id: str,
        vendor: str,
        product_id: str,
        order_id: str,
        order_value: float,
        attribution: AttributionContext | None = None,
    ) -> str:
        return await self.ledger.record_conversion(
            click_id, vendor, product_id, order_id, order_value, attribution
        )

    async def approve_commission(self, commission_id: str):
        return await self.ledger.approve(commission_id)

    async def reject_commission(self, commission_id: str, reason: str = ""):
        return await self.ledger.reject(commission_id, reason)

    async def mark_commission_paid(self, commission_id: str, payment_date: Optional[datetime] = None):
        return await self.ledger.mark_paid(commission_id, payment_date)

    async def pending_commissions(self):
        return await self.ledger.pending()

    async def commission_history(
        self,
        vendor: Optional[str] = None,
        status: Optional[CommissionStatus] = None,
        limit: int = 50,
    ):
        return await self.ledger.history(vendor=vendor, status=status, limit=limit)

    # ── Reporting ────────────────────────────────────────────────────────────

    async def revenue_report(self, timeframe: Timeframe | str) -> RevenueReport:
        return await self.reporter.report(timeframe)

    async def performance(self, timeframe: Timeframe | str) -> dict:
        return await self.reporter.performance(timeframe)

    async def projections(self) -> dict:
        return await self.reporter.projections()

    async def top_content(self, limit: int = 10) -> list[dict]:
        return await self.reporter.top_content(limit)

    async def utm_performance(self) -> list[dict]:
        return await self.reporter.utm_performance()

    # ── Inventory ────────────────────────────────────────────────────────────

    async def sync_inventory(
        self, mode: SyncMode = SyncMode.FULL, vendors: Optional[Iterable[Vendor]] = None
    ) -> CycleResult:
        return await self.monitor.run_cycle(mode, vendors)

    async def inventory(self, vendor: Optional[Vendor] = None, category: Optional[str] = None):
        try:
            return await self.monitor.inventory(vendor, category)
        except Exception:
            logger.exception("Inventory read failed")
            return []

    async def low_stock(self):
        try:
            return await self.monitor.low_stock_items()
        except Exception:
            logger.exception("Low-stock read failed")
            return []

    async def price_alerts(self, limit: int = 10):
        try:
            return await self.monitor.price_alerts(limit)
        except Exception:
            logger.exception("Price alert read failed")
            return []
