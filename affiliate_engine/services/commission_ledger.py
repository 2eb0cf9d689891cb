"""
Commission Ledger
---
Turns vendor purchase notifications into commission records, links them back
to the originating click, and walks each record through its lifecycle:

    pending ──approve──▶ approved ──mark_paid──▶ paid
       └─────reject────▶ rejected

Transitions are compare-and-set against the stored status, so two concurrent
approvals of the same record cannot both succeed.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from affiliate_engine.db.ports import ClickStore, CommissionStore
from affiliate_engine.errors import (
    CommissionNotFound,
    InvalidStateTransition,
    StorageUnavailable,
    ValidationError,
)
from affiliate_engine.models import (
    AttributionContext,
    CommissionAlert,
    CommissionRecord,
    CommissionStatus,
    Vendor,
)
from affiliate_engine.services.notifications import AlertSink, LogAlertSink
from affiliate_engine.services.rates import RateTableHolder

logger = logging.getLogger(__name__)

HIGH_VALUE_THRESHOLD = 50.00


class CommissionLedger:
    def __init__(
        self,
        commissions: CommissionStore,
        clicks: ClickStore,
        rates: RateTableHolder,
        alert_sink: AlertSink | None = None,
        high_value_threshold: float = HIGH_VALUE_THRESHOLD,
        click_update_attempts: int = 3,
        retry_delay: float = 0.2,
    ):
        self.commissions = commissions
        self.clicks = clicks
        self.rates = rates
        self.alert_sink = alert_sink or LogAlertSink()
        self.high_value_threshold = high_value_threshold
        self.click_update_attempts = max(1, click_update_attempts)
        self.retry_delay = retry_delay

    # ── Conversions ──────────────────────────────────────────────────────────

    async def record_conversion(
        self,
        click_id: str,
        vendor: str,
        external_product_id: str,
        external_order_id: str,
        order_value: float,
        attribution: AttributionContext | None = None,
    ) -> str:
        """Record a conversion and return the commission id.

        A repeat notification for an order already on the ledger returns the
        existing id. Unknown vendors are recorded at the default rate.
        """
        if not click_id or not str(click_id).strip():
            raise ValidationError("click_id is required")
        if not external_order_id or not str(external_order_id).strip():
            raise ValidationError("order_id is required")
        if order_value is None or order_value <= 0:
            raise ValidationError("order_value must be greater than zero")

        vendor_slug = (vendor or "").strip().lower()
        existing = await self.commissions.find_commission_by_order(vendor_slug, external_order_id)
        if existing:
            logger.info(f"Duplicate conversion for {vendor_slug}/{external_order_id} → {existing.id}")
            return existing.id

        table = self.rates.current()
        rate, fell_back = table.resolve(vendor_slug)
        if fell_back:
            logger.warning(f"Unknown vendor {vendor_slug!r}, using default commission rate")
        earned = rate.commission_for(order_value)

        now = datetime.now(timezone.utc)
        record = CommissionRecord(
            id=str(uuid.uuid4()),
            click_id=click_id,
            vendor=vendor_slug,
            external_product_id=external_product_id or "",
            external_order_id=external_order_id,
            order_value=order_value,
            rate_kind=rate.kind.value,
            commission_rate=rate.value,
            commission_earned=earned,
            status=CommissionStatus.PENDING,
            conversion_date=now,
            attribution=attribution or AttributionContext(),
        )
        if not await self.commissions.insert_commission(record):
            # Lost a race with a concurrent retry of the same order
            winner = await self.commissions.find_commission_by_order(vendor_slug, external_order_id)
            if winner:
                return winner.id
            raise StorageUnavailable(f"Commission for {vendor_slug}/{external_order_id} not readable")

        logger.info(
            f"Commission {record.id}: ${earned:.2f} on ${order_value:.2f} from {vendor_slug} "
            f"(click {click_id})"
        )

        await self._update_click(click_id, order_value, earned, now)

        if earned > self.high_value_threshold:
            await self._raise_high_value_alert(record)

        return record.id

    async def _update_click(
        self, click_id: str, order_value: float, earned: float, converted_at: datetime
    ) -> None:
        for attempt in range(1, self.click_update_attempts + 1):
            try:
                updated = await self.clicks.mark_click_converted(
                    click_id, order_value, earned, converted_at
                )
            except StorageUnavailable as e:
                if attempt == self.click_update_attempts:
                    logger.error(
                        f"Click {click_id} not marked converted after {attempt} attempts: {e}"
                    )
                    return
                await asyncio.sleep(self.retry_delay * attempt)
                continue

            if not updated:
                try:
                    click = await self.clicks.get_click(click_id)
                except StorageUnavailable:
                    return
                if click is None:
                    logger.warning(f"Conversion for unknown click {click_id}; commission kept")
                else:
                    logger.info(f"Click {click_id} already converted; keeping first conversion")
            return

    async def _raise_high_value_alert(self, record: CommissionRecord) -> None:
        alert = CommissionAlert(
            id=str(uuid.uuid4()),
            commission_id=record.id,
            vendor=record.vendor,
            amount=record.commission_earned,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.commissions.insert_commission_alert(alert)
            await self.alert_sink.send_alert(alert)
        except Exception as e:
            logger.error(f"High-value alert for commission {record.id} not delivered: {e}")

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def approve(self, commission_id: str) -> CommissionRecord:
        return await self._transition(
            commission_id,
            CommissionStatus.PENDING,
            CommissionStatus.APPROVED,
            {"approved_date": datetime.now(timezone.utc)},
        )

    async def reject(self, commission_id: str, reason: str = "") -> CommissionRecord:
        return await self._transition(
            commission_id,
            CommissionStatus.PENDING,
            CommissionStatus.REJECTED,
            {"rejected_date": datetime.now(timezone.utc), "rejection_reason": reason},
        )

    async def mark_paid(
        self, commission_id: str, payment_date: Optional[datetime] = None
    ) -> CommissionRecord:
        return await self._transition(
            commission_id,
            CommissionStatus.APPROVED,
            CommissionStatus.PAID,
            {"payment_date": payment_date or datetime.now(timezone.utc)},
        )

    async def _transition(
        self,
        commission_id: str,
        expected: CommissionStatus,
        new: CommissionStatus,
        changes: dict,
    ) -> CommissionRecord:
        changed = await self.commissions.transition_commission(commission_id, expected, new, changes)
        record = await self.commissions.get_commission(commission_id)
        if record is None:
            raise CommissionNotFound(commission_id)
        if not changed:
            raise InvalidStateTransition(commission_id, record.status.value, new.value)
        logger.info(f"Commission {commission_id}: {expected.value} → {new.value}")
        return record

    # ── Queries ──────────────────────────────────────────────────────────────

    async def get(self, commission_id: str) -> CommissionRecord:
        record = await self.commissions.get_commission(commission_id)
        if record is None:
            raise CommissionNotFound(commission_id)
        return record

    async def pending(self) -> list[CommissionRecord]:
        return await self.commissions.list_commissions(status=CommissionStatus.PENDING)

    async def history(
        self,
        vendor: str | Vendor | None = None,
        status: CommissionStatus | None = None,
        limit: int = 50,
    ) -> list[CommissionRecord]:
        slug = vendor.value if isinstance(vendor, Vendor) else vendor
        return await self.commissions.list_commissions(status=status, vendor=slug, limit=limit)
