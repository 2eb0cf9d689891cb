"""Storage and content interfaces the services depend on.

``AffiliateRepository`` implements every store against SQLAlchemy; tests use
in-memory fakes with the same shape.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

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
)


class ClickStore(Protocol):
    async def insert_click(self, click: Click) -> None: ...

    async def get_click(self, click_id: str) -> Optional[Click]: ...

    async def mark_click_converted(
        self,
        click_id: str,
        conversion_value: float,
        commission_earned: float,
        converted_at: datetime,
    ) -> bool:
        """Set conversion fields if the click exists and is unconverted.

        Returns False when the click is unknown or already converted.
        """
        ...

    async def clicks_since(self, since: datetime) -> list[Click]: ...


class CommissionStore(Protocol):
    async def insert_commission(self, record: CommissionRecord) -> bool:
        """Persist a new record. Returns False when (vendor, external_order_id)
        is already recorded."""
        ...

    async def get_commission(self, commission_id: str) -> Optional[CommissionRecord]: ...

    async def find_commission_by_order(
        self, vendor: str, external_order_id: str
    ) -> Optional[CommissionRecord]: ...

    async def transition_commission(
        self,
        commission_id: str,
        expected: CommissionStatus,
        new: CommissionStatus,
        changes: dict,
    ) -> bool:
        """Compare-and-set: apply ``new`` status and ``changes`` only while the
        stored status equals ``expected``. Returns whether a row changed."""
        ...

    async def list_commissions(
        self,
        status: Optional[CommissionStatus] = None,
        vendor: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[CommissionRecord]:
        """Newest conversion first."""
        ...

    async def insert_commission_alert(self, alert: CommissionAlert) -> None: ...


class InventoryStore(Protocol):
    async def get_snapshot(self, vendor: Vendor, product_id: str) -> Optional[InventorySnapshot]: ...

    async def upsert_snapshot(self, snapshot: InventorySnapshot) -> None: ...

    async def list_snapshots(
        self,
        vendor: Optional[Vendor] = None,
        category: Optional[str] = None,
        availability: Optional[Availability] = None,
    ) -> list[InventorySnapshot]: ...

    async def insert_price_alert(self, alert: PriceAlert) -> None: ...

    async def recent_price_alerts(self, limit: int = 10) -> list[PriceAlert]: ...


class RecommendationCacheStore(Protocol):
    async def get_cached_recommendations(self, cache_key: str, now: datetime) -> Optional[list[dict]]:
        """Cached items for ``cache_key`` unless missing or expired at ``now``."""
        ...

    async def put_cached_recommendations(
        self, cache_key: str, content_ref: str, items: list[dict], expires_at: datetime
    ) -> None: ...


class ContentSource(Protocol):
    async def get_content(self, content_ref: str) -> Optional[Content]: ...
