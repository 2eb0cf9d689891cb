"""Tests for revenue reports, projections and attribution rollups."""
import uuid
from datetime import timedelta

import pytest

from affiliate_engine.models import (
    AttributionContext,
    CampaignContext,
    Click,
    ClientContext,
    CommissionRecord,
    CommissionStatus,
    Vendor,
)
from affiliate_engine.services.revenue import RevenueReporter
from tests.conftest import NOW


def _commission(store, vendor="viator", order_value=100.0, earned=8.0, days_ago=1,
                status=CommissionStatus.APPROVED, content_ref=None, source=None, campaign=None):
    record = CommissionRecord(
        id=str(uuid.uuid4()),
        click_id="c",
        vendor=vendor,
        external_product_id="p",
        external_order_id=str(uuid.uuid4()),
        order_value=order_value,
        rate_kind="percentage",
        commission_rate=0.08,
        commission_earned=earned,
        status=status,
        conversion_date=NOW - timedelta(days=days_ago),
        attribution=AttributionContext(
            campaign=CampaignContext(source=source, medium="social" if source else None, campaign=campaign),
            content_ref=content_ref,
        ),
    )
    store.commissions[record.id] = record
    return record


def _stored_click(store, vendor=Vendor.VIATOR, converted=False, value=None, earned=None, days_ago=1):
    click = Click(
        id=str(uuid.uuid4()),
        vendor=vendor,
        target_url="https://example.com",
        client=ClientContext(),
        campaign=CampaignContext(),
        session_id="s",
        created_at=NOW - timedelta(days=days_ago),
        converted=converted,
        conversion_value=value,
        commission_earned=earned,
    )
    store.clicks[click.id] = click
    return click


@pytest.fixture
def reporter(store):
    return RevenueReporter(store, store, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_empty_report_is_all_zero(reporter):
    report = await reporter.report("month")
    assert report.total_revenue == 0.0
    assert report.total_commission == 0.0
    assert report.conversion_count == 0
    assert report.avg_order_value == 0.0
    body = report.to_dict()
    assert set(body["vendor_breakdown"]) == {v.value for v in Vendor}
    assert all(v["conversions"] == 0 for v in body["vendor_breakdown"].values())
    assert body["content_performance"] == {}


@pytest.mark.asyncio
async def test_only_approved_commissions_count(store, reporter):
    _commission(store, earned=8.0)
    _commission(store, earned=100.0, status=CommissionStatus.PENDING)
    _commission(store, earned=100.0, status=CommissionStatus.REJECTED)
    _commission(store, earned=100.0, status=CommissionStatus.PAID)

    report = await reporter.report("month")
    assert report.conversion_count == 1
    assert report.total_commission == 8.0


@pytest.mark.asyncio
async def test_breakdowns(store, reporter):
    _commission(store, "viator", 100.0, 8.0, content_ref="zion")
    _commission(store, "viator", 50.0, 4.0, content_ref="zion")
    _commission(store, "turo", 300.0, 25.0, content_ref="moab")
    _commission(store, "amazon", 10.0, 0.4)

    body = (await reporter.report("month")).to_dict()
    assert body["total_revenue"] == 460.0
    assert body["total_commission"] == 37.4
    assert body["avg_order_value"] == 115.0
    assert body["vendor_breakdown"]["viator"] == {
        "revenue": 150.0, "commission": 12.0, "conversions": 2, "avg_order_value": 75.0,
    }
    assert body["vendor_breakdown"]["golfnow"]["conversions"] == 0
    assert body["content_performance"]["zion"] == {"revenue": 150.0, "commission": 12.0, "conversions": 2}
    assert "moab" in body["content_performance"]


@pytest.mark.asyncio
async def test_timeframe_filter(store, reporter):
    _commission(store, days_ago=0)
    _commission(store, days_ago=5)
    _commission(store, days_ago=20)
    _commission(store, days_ago=200)

    assert (await reporter.report("day")).conversion_count == 1
    assert (await reporter.report("week")).conversion_count == 2
    assert (await reporter.report("month")).conversion_count == 3
    assert (await reporter.report("year")).conversion_count == 4


@pytest.mark.asyncio
async def test_unknown_vendor_gets_its_own_row(store, reporter):
    _commission(store, "etsy", 200.0, 10.0)
    body = (await reporter.report("month")).to_dict()
    assert body["vendor_breakdown"]["etsy"]["commission"] == 10.0


@pytest.mark.asyncio
async def test_invalid_timeframe(reporter):
    with pytest.raises(ValueError):
        await reporter.report("decade")


@pytest.mark.asyncio
async def test_projections(store, reporter):
    _commission(store, earned=30.0, days_ago=2)
    _commission(store, earned=60.0, days_ago=10)
    _commission(store, earned=500.0, days_ago=45)  # outside the window

    p = await reporter.projections()
    assert p["daily_average"] == 3.0
    assert p["weekly_projection"] == 21.0
    assert p["monthly_projection"] == 90.0
    assert p["quarterly_projection"] == 270.0
    assert p["yearly_projection"] == 1095.0


@pytest.mark.asyncio
async def test_projections_empty(reporter):
    assert set((await reporter.projections()).values()) == {0.0}


@pytest.mark.asyncio
async def test_top_content(store, reporter):
    _commission(store, "viator", earned=8.0, content_ref="zion")
    _commission(store, "amazon", earned=4.0, content_ref="zion")
    _commission(store, "turo", earned=25.0, content_ref="moab")
    _commission(store, earned=99.0)  # unattributed

    top = await reporter.top_content(limit=5)
    assert [t["content_id"] for t in top] == ["moab", "zion"]
    assert top[1]["commission"] == 12.0
    assert top[1]["vendors"] == {"viator": 1, "amazon": 1}
    assert len(await reporter.top_content(limit=1)) == 1


@pytest.mark.asyncio
async def test_utm_performance(store, reporter):
    _commission(store, earned=8.0, source="pinterest", campaign="spring")
    _commission(store, earned=2.0, source="pinterest", campaign="spring")
    _commission(store, earned=5.0, source="instagram", campaign="reels")
    _commission(store, earned=50.0)  # no UTM source

    rows = {r["source"]: r for r in await reporter.utm_performance()}
    assert set(rows) == {"pinterest", "instagram"}
    assert rows["pinterest"]["commission"] == 10.0
    assert rows["pinterest"]["conversions"] == 2
    assert rows["pinterest"]["campaign"] == "spring"


@pytest.mark.asyncio
async def test_click_performance(store, reporter):
    _stored_click(store, converted=True, value=100.0, earned=8.0)
    _stored_click(store)
    _stored_click(store, Vendor.TURO)
    _stored_click(store, Vendor.TURO, converted=True, value=200.0, earned=25.0)
    _stored_click(store, days_ago=60)

    perf = await reporter.performance("month")
    assert perf["total_clicks"] == 4
    assert perf["total_conversions"] == 2
    assert perf["conversion_rate"] == 50.0
    assert perf["total_revenue"] == 33.0
    assert perf["avg_order_value"] == 150.0
    assert perf["vendors"]["viator"]["clicks"] == 2
    assert perf["vendors"]["turo"]["revenue"] == 25.0
