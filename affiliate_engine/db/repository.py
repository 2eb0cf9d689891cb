"""Affiliate repository - SQLAlchemy implementation of every store port.

Each call opens its own session from the injected factory so the repository
can be shared by the API, the scheduler and the CLI. Driver and connection
failures surface as ``StorageUnavailable``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.db.tables import (
    AffiliateClickRow,
    CommissionAlertRow,
    CommissionRecordRow,
    ContentItemRow,
    InventoryItemRow,
    PriceAlertRow,
    RecommendationCacheRow,
)
from affiliate_engine.errors import StorageUnavailable
from affiliate_engine.models import (
    AlertType,
    AttributionContext,
    Availability,
    CampaignContext,
    Click,
    ClientContext,
    CommissionAlert,
    CommissionRecord,
    CommissionStatus,
    Content,
    InventorySnapshot,
    PriceAlert,
    Vendor,
    snapshot_id,
)

logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Row conversion ───────────────────────────────────────────────────────────

def _row_to_click(row: AffiliateClickRow) -> Click:
    return Click(
        id=row.id,
        vendor=Vendor(row.vendor),
        target_url=row.target_url,
        client=ClientContext(
            user_agent=row.user_agent or "",
            ip_address=row.ip_address or "",
            referrer=row.referrer or "",
        ),
        campaign=CampaignContext(
            source=row.utm_source, medium=row.utm_medium, campaign=row.utm_campaign,
        ),
        session_id=row.session_id,
        created_at=_utc(row.created_at),
        content_ref=row.content_ref,
        converted=bool(row.converted),
        conversion_value=row.conversion_value,
        commission_earned=row.commission_earned,
        converted_at=_utc(row.converted_at),
    )


def _click_to_row(click: Click) -> AffiliateClickRow:
    return AffiliateClickRow(
        id=click.id,
        vendor=click.vendor.value,
        target_url=click.target_url,
        content_ref=click.content_ref,
        user_agent=click.client.user_agent,
        ip_address=click.client.ip_address,
        referrer=click.client.referrer,
        utm_source=click.campaign.source,
        utm_medium=click.campaign.medium,
        utm_campaign=click.campaign.campaign,
        session_id=click.session_id,
        created_at=_utc(click.created_at),
        converted=click.converted,
        conversion_value=click.conversion_value,
        commission_earned=click.commission_earned,
        converted_at=_utc(click.converted_at),
    )


def _row_to_commission(row: CommissionRecordRow) -> CommissionRecord:
    return CommissionRecord(
        id=row.id,
        click_id=row.click_id,
        vendor=row.vendor,
        external_product_id=row.external_product_id,
        external_order_id=row.external_order_id,
        order_value=row.order_value,
        rate_kind=row.rate_kind,
        commission_rate=row.commission_rate,
        commission_earned=row.commission_earned,
        status=CommissionStatus(row.status),
        conversion_date=_utc(row.conversion_date),
        attribution=AttributionContext(
            campaign=CampaignContext(
                source=row.utm_source, medium=row.utm_medium, campaign=row.utm_campaign,
            ),
            content_ref=row.content_ref,
            user_id=row.user_id,
        ),
        approved_date=_utc(row.approved_date),
        rejected_date=_utc(row.rejected_date),
        rejection_reason=row.rejection_reason,
        payment_date=_utc(row.payment_date),
    )


def _commission_to_row(record: CommissionRecord) -> CommissionRecordRow:
    campaign = record.attribution.campaign
    return CommissionRecordRow(
        id=record.id,
        click_id=record.click_id,
        vendor=record.vendor,
        external_product_id=record.external_product_id,
        external_order_id=record.external_order_id,
        order_value=record.order_value,
        rate_kind=record.rate_kind,
        commission_rate=record.commission_rate,
        commission_earned=record.commission_earned,
        status=record.status.value,
        conversion_date=_utc(record.conversion_date),
        approved_date=_utc(record.approved_date),
        rejected_date=_utc(record.rejected_date),
        rejection_reason=record.rejection_reason,
        payment_date=_utc(record.payment_date),
        utm_source=campaign.source,
        utm_medium=campaign.medium,
        utm_campaign=campaign.campaign,
        content_ref=record.attribution.content_ref,
        user_id=record.attribution.user_id,
    )


def _row_to_snapshot(row: InventoryItemRow) -> InventorySnapshot:
    return InventorySnapshot(
        vendor=Vendor(row.vendor),
        product_id=row.product_id,
        name=row.name,
        price=row.price,
        availability=Availability(row.availability),
        affiliate_link=row.affiliate_link,
        category=row.category,
        last_updated=_utc(row.last_updated),
        original_price=row.original_price,
        stock_quantity=row.stock_quantity,
    )


def _row_to_price_alert(row: PriceAlertRow) -> PriceAlert:
    return PriceAlert(
        id=row.id,
        product_id=row.product_id,
        vendor=Vendor(row.vendor),
        old_price=row.old_price,
        new_price=row.new_price,
        discount_percentage=row.discount_percentage,
        alert_type=AlertType(row.alert_type),
        created_at=_utc(row.created_at),
    )


# ── Repository ───────────────────────────────────────────────────────────────

class AffiliateRepository:
    """Async clicks/commissions/inventory/cache storage backed by SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except IntegrityError:
            raise
        except (DBAPIError, OSError) as e:
            logger.error(f"Storage error: {e}")
            raise StorageUnavailable(str(e)) from e

    # ── Clicks ───────────────────────────────────────────────────────────────

    async def insert_click(self, click: Click) -> None:
        async with self._session() as session:
            session.add(_click_to_row(click))
            await session.commit()

    async def get_click(self, click_id: str) -> Optional[Click]:
        async with self._session() as session:
            row = await session.get(AffiliateClickRow, click_id)
            return _row_to_click(row) if row else None

    async def mark_click_converted(
        self,
        click_id: str,
        conversion_value: float,
        commission_earned: float,
        converted_at: datetime,
    ) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(AffiliateClickRow)
                .where(AffiliateClickRow.id == click_id, AffiliateClickRow.converted.is_(False))
                .values(
                    converted=True,
                    conversion_value=conversion_value,
                    commission_earned=commission_earned,
                    converted_at=_utc(converted_at),
                )
            )
            await session.commit()
            return result.rowcount == 1

    async def clicks_since(self, since: datetime) -> list[Click]:
        async with self._session() as session:
            result = await session.execute(
                select(AffiliateClickRow)
                .where(AffiliateClickRow.created_at >= _utc(since))
                .order_by(AffiliateClickRow.created_at.desc())
            )
            return [_row_to_click(r) for r in result.scalars().all()]

    # ── Commissions ──────────────────────────────────────────────────────────

    async def insert_commission(self, record: CommissionRecord) -> bool:
        try:
            async with self._session() as session:
                session.add(_commission_to_row(record))
                await session.commit()
        except IntegrityError:
            logger.info(f"Commission for {record.vendor}/{record.external_order_id} already recorded")
            return False
        return True

    async def get_commission(self, commission_id: str) -> Optional[CommissionRecord]:
        async with self._session() as session:
            row = await session.get(CommissionRecordRow, commission_id)
            return _row_to_commission(row) if row else None

    async def find_commission_by_order(
        self, vendor: str, external_order_id: str
    ) -> Optional[CommissionRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(CommissionRecordRow).where(
                    CommissionRecordRow.vendor == vendor,
                    CommissionRecordRow.external_order_id == external_order_id,
                )
            )
            row = result.scalar_one_or_none()
            return _row_to_commission(row) if row else None

    async def transition_commission(
        self,
        commission_id: str,
        expected: CommissionStatus,
        new: CommissionStatus,
        changes: dict,
    ) -> bool:
        values = {k: (_utc(v) if isinstance(v, datetime) else v) for k, v in changes.items()}
        async with self._session() as session:
            result = await session.execute(
                update(CommissionRecordRow)
                .where(
                    CommissionRecordRow.id == commission_id,
                    CommissionRecordRow.status == expected.value,
                )
                .values(status=new.value, **values)
            )
            await session.commit()
            return result.rowcount == 1

    async def list_commissions(
        self,
        status: Optional[CommissionStatus] = None,
        vendor: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[CommissionRecord]:
        stmt = select(CommissionRecordRow)
        if status is not None:
            stmt = stmt.where(CommissionRecordRow.status == status.value)
        if vendor:
            stmt = stmt.where(CommissionRecordRow.vendor == vendor)
        if since is not None:
            stmt = stmt.where(CommissionRecordRow.conversion_date >= _utc(since))
        stmt = stmt.order_by(CommissionRecordRow.conversion_date.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_row_to_commission(r) for r in result.scalars().all()]

    async def insert_commission_alert(self, alert: CommissionAlert) -> None:
        async with self._session() as session:
            session.add(CommissionAlertRow(
                id=alert.id,
                type=alert.type,
                commission_id=alert.commission_id,
                vendor=alert.vendor,
                amount=alert.amount,
                created_at=_utc(alert.created_at),
            ))
            await session.commit()

    # ── Inventory ────────────────────────────────────────────────────────────

    async def get_snapshot(self, vendor: Vendor, product_id: str) -> Optional[InventorySnapshot]:
        async with self._session() as session:
            row = await session.get(InventoryItemRow, snapshot_id(vendor, product_id))
            return _row_to_snapshot(row) if row else None

    async def upsert_snapshot(self, snapshot: InventorySnapshot) -> None:
        async with self._session() as session:
            row = await session.get(InventoryItemRow, snapshot.id)
            if row is None:
                row = InventoryItemRow(vendor_product_id=snapshot.id)
                session.add(row)
            row.vendor = snapshot.vendor.value
            row.product_id = snapshot.product_id
            row.name = snapshot.name
            row.price = snapshot.price
            row.original_price = snapshot.original_price
            row.availability = snapshot.availability.value
            row.stock_quantity = snapshot.stock_quantity
            row.affiliate_link = snapshot.affiliate_link
            row.category = snapshot.category
            row.last_updated = _utc(snapshot.last_updated)
            await session.commit()

    async def list_snapshots(
        self,
        vendor: Optional[Vendor] = None,
        category: Optional[str] = None,
        availability: Optional[Availability] = None,
    ) -> list[InventorySnapshot]:
        stmt = select(InventoryItemRow)
        if vendor is not None:
            stmt = stmt.where(InventoryItemRow.vendor == vendor.value)
        if category:
            stmt = stmt.where(InventoryItemRow.category == category)
        if availability is not None:
            stmt = stmt.where(InventoryItemRow.availability == availability.value)
        stmt = stmt.order_by(InventoryItemRow.last_updated.desc())
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_row_to_snapshot(r) for r in result.scalars().all()]

    async def insert_price_alert(self, alert: PriceAlert) -> None:
        async with self._session() as session:
            session.add(PriceAlertRow(
                id=alert.id,
                product_id=alert.product_id,
                vendor=alert.vendor.value,
                old_price=alert.old_price,
                new_price=alert.new_price,
                discount_percentage=alert.discount_percentage,
                alert_type=alert.alert_type.value,
                created_at=_utc(alert.created_at),
            ))
            await session.commit()

    async def recent_price_alerts(self, limit: int = 10) -> list[PriceAlert]:
        async with self._session() as session:
            result = await session.execute(
                select(PriceAlertRow).order_by(PriceAlertRow.created_at.desc()).limit(limit)
            )
            return [_row_to_price_alert(r) for r in result.scalars().all()]

    # ── Recommendation cache ─────────────────────────────────────────────────

    async def get_cached_recommendations(self, cache_key: str, now: datetime) -> Optional[list[dict]]:
        async with self._session() as session:
            row = await session.get(RecommendationCacheRow, cache_key)
            if row is None or _utc(row.expires_at) <= _utc(now):
                return None
            return list(row.items or [])

    async def put_cached_recommendations(
        self, cache_key: str, content_ref: str, items: list[dict], expires_at: datetime
    ) -> None:
        async with self._session() as session:
            await session.merge(RecommendationCacheRow(
                cache_key=cache_key,
                content_ref=content_ref,
                items=items,
                created_at=datetime.now(timezone.utc),
                expires_at=_utc(expires_at),
            ))
            await session.commit()

    # ── Content ──────────────────────────────────────────────────────────────

    async def get_content(self, content_ref: str) -> Optional[Content]:
        async with self._session() as session:
            row = await session.get(ContentItemRow, content_ref)
            if row is None:
                return None
            return Content(
                content_ref=row.id,
                title=row.title,
                description=row.description or "",
                tags=tuple(row.tags or ()),
            )
