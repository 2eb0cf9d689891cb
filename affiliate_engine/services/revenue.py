"""
Revenue reporting over approved commissions.
---
Aggregates in full precision and rounds money to cents only when a report
is rendered. Empty periods produce all-zero reports.

- report(timeframe)      - totals plus vendor and content breakdowns
- projections()          - 30-day daily average projected forward
- performance(timeframe) - click → conversion funnel from the click log
- top_content(limit)     - content ranked by commission earned
- utm_performance()      - commission grouped by UTM source/medium/campaign
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from affiliate_engine.db.ports import ClickStore, CommissionStore
from affiliate_engine.models import CommissionStatus, Timeframe, Vendor

logger = logging.getLogger(__name__)

PROJECTION_WINDOW_DAYS = 30


def _money(value: float) -> float:
    return round(value, 2)


@dataclass
class _Totals:
    revenue: float = 0.0
    commission: float = 0.0
    conversions: int = 0

    def add(self, order_value: float, commission: float) -> None:
        self.revenue += order_value
        self.commission += commission
        self.conversions += 1

    @property
    def avg_order_value(self) -> float:
        return self.revenue / self.conversions if self.conversions else 0.0

    def to_dict(self, with_avg: bool = True) -> dict:
        out = {
            "revenue": _money(self.revenue),
            "commission": _money(self.commission),
            "conversions": self.conversions,
        }
        if with_avg:
            out["avg_order_value"] = _money(self.avg_order_value)
        return out


@dataclass
class RevenueReport:
    period: Timeframe
    since: datetime
    totals: _Totals = field(default_factory=_Totals)
    vendors: dict[str, _Totals] = field(default_factory=dict)
    content: dict[str, _Totals] = field(default_factory=dict)

    @property
    def total_revenue(self) -> float:
        return _money(self.totals.revenue)

    @property
    def total_commission(self) -> float:
        return _money(self.totals.commission)

    @property
    def conversion_count(self) -> int:
        return self.totals.conversions

    @property
    def avg_order_value(self) -> float:
        return _money(self.totals.avg_order_value)

    def to_dict(self) -> dict:
        return {
            "period": self.period.value,
            "since": self.since.isoformat(),
            "total_revenue": self.total_revenue,
            "total_commission": self.total_commission,
            "conversion_count": self.conversion_count,
            "avg_order_value": self.avg_order_value,
            "vendor_breakdown": {v: t.to_dict() for v, t in self.vendors.items()},
            "content_performance": {c: t.to_dict(with_avg=False) for c, t in self.content.items()},
        }


class RevenueReporter:
    def __init__(
        self,
        commissions: CommissionStore,
        clicks: ClickStore,
        clock: Callable[[], datetime] | None = None,
    ):
        self.commissions = commissions
        self.clicks = clicks
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _approved_since(self, since: datetime):
        return await self.commissions.list_commissions(
            status=CommissionStatus.APPROVED, since=since
        )

    async def report(self, timeframe: Timeframe | str = Timeframe.MONTH) -> RevenueReport:
        timeframe = Timeframe(timeframe)
        since = self.clock() - timedelta(days=timeframe.days)
        report = RevenueReport(
            period=timeframe,
            since=since,
            vendors={v.value: _Totals() for v in Vendor},
        )
        for record in await self._approved_since(since):
            report.totals.add(record.order_value, record.commission_earned)
            report.vendors.setdefault(record.vendor, _Totals()).add(
                record.order_value, record.commission_earned
            )
            if record.content_ref:
                report.content.setdefault(record.content_ref, _Totals()).add(
                    record.order_value, record.commission_earned
                )
        logger.info(
            f"Revenue report ({timeframe.value}): {report.conversion_count} conversions, "
            f"${report.total_commission:.2f} commission"
        )
        return report

    async def projections(self) -> dict:
        since = self.clock() - timedelta(days=PROJECTION_WINDOW_DAYS)
        total = sum(r.commission_earned for r in await self._approved_since(since))
        daily = total / PROJECTION_WINDOW_DAYS
        return {
            "daily_average": _money(daily),
            "weekly_projection": _money(daily * 7),
            "monthly_projection": _money(daily * 30),
            "quarterly_projection": _money(daily * 90),
            "yearly_projection": _money(daily * 365),
        }

    async def performance(self, timeframe: Timeframe | str = Timeframe.MONTH) -> dict:
        """Click funnel for the period, from the click log."""
        timeframe = Timeframe(timeframe)
        since = self.clock() - timedelta(days=timeframe.days)
        clicks = await self.clicks.clicks_since(since)

        per_vendor: dict[str, dict] = defaultdict(
            lambda: {"clicks": 0, "conversions": 0, "revenue": 0.0, "order_value": 0.0}
        )
        conversions = 0
        revenue = 0.0
        order_value = 0.0
        for click in clicks:
            stats = per_vendor[click.vendor.value]
            stats["clicks"] += 1
            if click.converted:
                conversions += 1
                stats["conversions"] += 1
                revenue += click.commission_earned or 0.0
                order_value += click.conversion_value or 0.0
                stats["revenue"] += click.commission_earned or 0.0
                stats["order_value"] += click.conversion_value or 0.0

        return {
            "timeframe": timeframe.value,
            "total_clicks": len(clicks),
            "total_conversions": conversions,
            "conversion_rate": round(conversions / len(clicks) * 100, 2) if clicks else 0.0,
            "total_revenue": _money(revenue),
            "avg_order_value": _money(order_value / conversions) if conversions else 0.0,
            "vendors": {
                vendor: {
                    "clicks": s["clicks"],
                    "conversions": s["conversions"],
                    "conversion_rate": round(s["conversions"] / s["clicks"] * 100, 2),
                    "revenue": _money(s["revenue"]),
                }
                for vendor, s in per_vendor.items()
            },
        }

    async def top_content(self, limit: int = 10, since: Optional[datetime] = None) -> list[dict]:
        records = await self.commissions.list_commissions(
            status=CommissionStatus.APPROVED, since=since
        )
        stats: dict[str, _Totals] = {}
        vendors: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for record in records:
            if not record.content_ref:
                continue
            stats.setdefault(record.content_ref, _Totals()).add(
                record.order_value, record.commission_earned
            )
            vendors[record.content_ref][record.vendor] += 1

        ranked = sorted(stats.items(), key=lambda kv: kv[1].commission, reverse=True)
        return [
            {"content_id": content_ref, **totals.to_dict(), "vendors": dict(vendors[content_ref])}
            for content_ref, totals in ranked[:limit]
        ]

    async def utm_performance(self) -> list[dict]:
        records = await self.commissions.list_commissions(status=CommissionStatus.APPROVED)
        stats: dict[tuple, _Totals] = {}
        for record in records:
            campaign = record.attribution.campaign
            if not campaign.source:
                continue
            key = (campaign.source, campaign.medium, campaign.campaign)
            stats.setdefault(key, _Totals()).add(record.order_value, record.commission_earned)

        return [
            {"source": source, "medium": medium, "campaign": name, **totals.to_dict()}
            for (source, medium, name), totals in stats.items()
        ]
