"""Outbound alert delivery: high-value commissions and inventory changes."""
from __future__ import annotations

import logging
from typing import Protocol, Union

import httpx

from affiliate_engine.models import CommissionAlert, PriceAlert

logger = logging.getLogger(__name__)

AnyAlert = Union[CommissionAlert, PriceAlert]


class AlertSink(Protocol):
    async def send_alert(self, alert: AnyAlert) -> None: ...


class LogAlertSink:
    """Writes alerts to the application log. Used when no webhook is set."""

    async def send_alert(self, alert: AnyAlert) -> None:
        if isinstance(alert, CommissionAlert):
            logger.warning(
                f"💰 High-value commission: ${alert.amount:.2f} from {alert.vendor} "
                f"(commission {alert.commission_id})"
            )
        else:
            logger.info(
                f"📦 {alert.alert_type.value}: {alert.vendor.value}/{alert.product_id} "
                f"{alert.old_price} → {alert.new_price}"
            )


class WebhookAlertSink:
    """POSTs each alert as JSON to a configured webhook (Slack-style relay)."""

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def send_alert(self, alert: AnyAlert) -> None:
        payload = {"kind": "commission" if isinstance(alert, CommissionAlert) else "inventory"}
        payload.update(alert.to_dict())
        if self._client is not None:
            resp = await self._client.post(self.url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=payload)
        resp.raise_for_status()


def sink_from_settings(settings) -> AlertSink:
    if settings.ALERT_WEBHOOK_URL:
        return WebhookAlertSink(settings.ALERT_WEBHOOK_URL)
    return LogAlertSink()
