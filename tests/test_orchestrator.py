"""Tests for the affiliate manager: recommendations joined with live inventory."""
from datetime import datetime, timezone

import pytest

from affiliate_engine.models import Availability, InventorySnapshot, Vendor
from affiliate_engine.services.orchestrator import preferences_key
from tests.conftest import ZION_CONTENT


def _stock(store, vendor, product_id, price, availability=Availability.IN_STOCK):
    snap = InventorySnapshot(
        vendor=vendor,
        product_id=product_id,
        name=product_id,
        price=price,
        availability=availability,
        affiliate_link=f"https://example.com/{product_id}?aff=1",
        category="activity",
        last_updated=datetime(2026, 6, 1, tzinfo=timezone.utc),
    )
    store.snapshots[snap.id] = snap


def test_preferences_key_ignores_key_order():
    assert preferences_key({"budget": 100, "group": 2}) == preferences_key({"group": 2, "budget": 100})
    assert preferences_key(None) == preferences_key({})
    assert len(preferences_key({"budget": 1})) == 16


@pytest.mark.asyncio
async def test_no_snapshots_no_recommendations(manager):
    assert await manager.recommendations_for(ZION_CONTENT.content_ref) == []


@pytest.mark.asyncio
async def test_only_in_stock_products_are_recommended(store, manager):
    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0)
    _stock(store, Vendor.AMAZON, "B07QFZL2CY", 110.0)
    _stock(store, Vendor.VIATOR, "arches-photography", 125.0, Availability.OUT_OF_STOCK)
    _stock(store, Vendor.VIATOR, "bryce-canyon-tour", 110.0, Availability.LOW_STOCK)

    links = await manager.recommendations_for(ZION_CONTENT.content_ref)
    ids = {link.product_id for link in links}
    assert ids == {"zion-narrows-hike", "B07QFZL2CY"}
    assert all(link.availability is Availability.IN_STOCK for link in links)

    hike = next(link for link in links if link.product_id == "zion-narrows-hike")
    assert hike.price == 95.0  # snapshot price, not the catalog list price
    assert hike.affiliate_url == "https://example.com/zion-narrows-hike?aff=1"
    scores = [link.relevance_score for link in links]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_scores_are_cached(store, manager):
    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0)
    first = await manager.recommendations_for(ZION_CONTENT.content_ref, {"budget": 100})

    key = f"{ZION_CONTENT.content_ref}:{preferences_key({'budget': 100})}"
    assert key in store.cache

    # served from the cache without reading the content again
    del store.content[ZION_CONTENT.content_ref]
    second = await manager.recommendations_for(ZION_CONTENT.content_ref, {"budget": 100})
    assert [l.product_id for l in second] == [l.product_id for l in first]
    assert store.calls["get_content"] == 1


@pytest.mark.asyncio
async def test_inventory_change_applies_to_cached_scores(store, manager):
    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0)
    assert await manager.recommendations_for(ZION_CONTENT.content_ref)

    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0, Availability.OUT_OF_STOCK)
    links = await manager.recommendations_for(ZION_CONTENT.content_ref)
    assert "zion-narrows-hike" not in {l.product_id for l in links}


@pytest.mark.asyncio
async def test_cache_failure_still_scores(store, manager):
    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0)
    store.failing["get_cached_recommendations"] = 1
    store.failing["put_cached_recommendations"] = 1
    links = await manager.recommendations_for(ZION_CONTENT.content_ref)
    assert [l.product_id for l in links] == ["zion-narrows-hike"]


@pytest.mark.asyncio
async def test_unknown_content(manager):
    assert await manager.recommendations_for("no-such-tripkit") == []


@pytest.mark.asyncio
async def test_storage_outage_degrades_to_empty(store, manager):
    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0)
    store.down = True
    assert await manager.recommendations_for(ZION_CONTENT.content_ref) == []
    assert await manager.inventory() == []
    assert await manager.low_stock() == []
    assert await manager.price_alerts() == []


@pytest.mark.asyncio
async def test_recommendation_summary(store, manager):
    _stock(store, Vendor.VIATOR, "zion-narrows-hike", 95.0)
    summary = await manager.recommendation_summary(ZION_CONTENT.content_ref)
    assert summary["content_id"] == ZION_CONTENT.content_ref
    assert summary["total"] == 1
    assert summary["potential_commission"] == 7.6  # 8% of 95.00
    assert summary["recommendations"][0]["vendor"] == "viator"


@pytest.mark.asyncio
async def test_sync_then_recommend(store, catalog, manager):
    for product in catalog.products:
        catalog.set_quote(product.vendor, product.product_id, 50.0)
    catalog.set_quote(Vendor.AMAZON, "B07QFZL2CY", 50.0, Availability.OUT_OF_STOCK)

    result = await manager.sync_inventory()
    assert result.failed == 0
    assert result.processed == len(catalog.products)

    links = await manager.recommendations_for(ZION_CONTENT.content_ref)
    ids = {l.product_id for l in links}
    assert "zion-narrows-hike" in ids
    assert "B07QFZL2CY" not in ids
    assert all(l.price == 50.0 for l in links)


@pytest.mark.asyncio
async def test_conversion_flow(store, manager):
    click_id = await manager.track_click("golfnow", "https://www.golfnow.com/tee-times/facility/glenwild")
    commission_id = await manager.track_conversion(click_id, "golfnow", "glenwild", "gn-1", 150.0)
    await manager.approve_commission(commission_id)
    report = await manager.revenue_report("month")
    assert report.total_commission == 18.0
    assert await manager.pending_commissions() == []
