"""Tests for the commission ledger - conversions, attribution and lifecycle."""
from datetime import datetime, timezone

import pytest

from affiliate_engine.errors import CommissionNotFound, InvalidStateTransition, ValidationError
from affiliate_engine.models import AttributionContext, CampaignContext, CommissionStatus, Vendor
from affiliate_engine.services.click_recorder import ClickRecorder
from affiliate_engine.services.commission_ledger import CommissionLedger
from affiliate_engine.services.rates import PercentageRate, RateTable
from tests.fakes import RecordingAlertSink


async def _click(store, vendor="viator"):
    return await ClickRecorder(store).record_click(vendor, f"https://{vendor}.example/p")


# ── Commission amounts ────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("vendor,expected", [
    ("viator", 8.00), ("golfnow", 12.00), ("amazon", 4.00), ("awin", 5.00),
])
async def test_percentage_vendor_on_100(store, ledger, vendor, expected):
    click_id = await _click(store, vendor)
    commission_id = await ledger.record_conversion(click_id, vendor, "p1", f"o-{vendor}", 100.0)
    record = store.commissions[commission_id]
    assert record.commission_earned == expected
    assert record.rate_kind == "percentage"
    assert record.status is CommissionStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize("order_value", [40.0, 100.0, 2500.0])
async def test_flat_vendor_ignores_order_value(store, ledger, order_value):
    click_id = await _click(store, "turo")
    commission_id = await ledger.record_conversion(click_id, "turo", "suv", f"t-{order_value}", order_value)
    assert store.commissions[commission_id].commission_earned == 25.00
    assert store.commissions[commission_id].rate_kind == "flat"


@pytest.mark.asyncio
async def test_unknown_vendor_uses_default_rate(store, ledger):
    commission_id = await ledger.record_conversion("c1", "etsy", "mug", "o-1", 200.0)
    record = store.commissions[commission_id]
    assert record.vendor == "etsy"
    assert record.commission_earned == pytest.approx(10.0)  # 5% default


@pytest.mark.asyncio
async def test_rate_swap_does_not_touch_existing_records(store, ledger, rates):
    first = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    rates.swap(RateTable({Vendor.VIATOR: PercentageRate(0.2)}))
    second = await ledger.record_conversion("c2", "viator", "p", "o-2", 100.0)
    assert store.commissions[first].commission_earned == 8.0
    assert store.commissions[second].commission_earned == 20.0


# ── Validation & dedupe ───────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"click_id": "", "external_order_id": "o", "order_value": 10.0},
    {"click_id": "c", "external_order_id": "", "order_value": 10.0},
    {"click_id": "c", "external_order_id": "o", "order_value": 0},
    {"click_id": "c", "external_order_id": "o", "order_value": -5.0},
])
async def test_invalid_conversion_rejected(store, ledger, kwargs):
    with pytest.raises(ValidationError):
        await ledger.record_conversion(vendor="amazon", external_product_id="p", **kwargs)
    assert store.commissions == {}


@pytest.mark.asyncio
async def test_repeated_order_returns_existing_commission(store, ledger):
    click_id = await _click(store)
    a = await ledger.record_conversion(click_id, "viator", "p", "order-9", 100.0)
    b = await ledger.record_conversion(click_id, "viator", "p", "order-9", 100.0)
    assert a == b
    assert len(store.commissions) == 1


# ── Click attribution ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_conversion_marks_click(store, ledger):
    click_id = await _click(store)
    await ledger.record_conversion(click_id, "viator", "p", "o-1", 150.0)
    click = store.clicks[click_id]
    assert click.converted is True
    assert click.conversion_value == 150.0
    assert click.commission_earned == pytest.approx(12.0)


@pytest.mark.asyncio
async def test_orphan_conversion_still_recorded(store, ledger):
    commission_id = await ledger.record_conversion("no-such-click", "viator", "p", "o-1", 100.0)
    assert commission_id in store.commissions
    assert store.commissions[commission_id].click_id == "no-such-click"


@pytest.mark.asyncio
async def test_first_conversion_wins_on_click(store, ledger):
    click_id = await _click(store)
    await ledger.record_conversion(click_id, "viator", "p", "o-1", 100.0)
    second = await ledger.record_conversion(click_id, "viator", "p", "o-2", 300.0)
    assert second in store.commissions
    assert len(store.commissions) == 2
    assert store.clicks[click_id].conversion_value == 100.0


@pytest.mark.asyncio
async def test_click_update_is_retried(store, ledger):
    click_id = await _click(store)
    store.failing["mark_click_converted"] = 2
    await ledger.record_conversion(click_id, "viator", "p", "o-1", 100.0)
    assert store.calls["mark_click_converted"] == 3
    assert store.clicks[click_id].converted is True


@pytest.mark.asyncio
async def test_click_update_failure_keeps_commission(store, ledger, caplog):
    click_id = await _click(store)
    store.failing["mark_click_converted"] = 10
    commission_id = await ledger.record_conversion(click_id, "viator", "p", "o-1", 100.0)
    assert commission_id in store.commissions
    assert store.clicks[click_id].converted is False
    assert any(r.levelname == "ERROR" and click_id in r.getMessage() for r in caplog.records)


# ── High-value alerts ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_high_value_alert(store, ledger, sink):
    commission_id = await ledger.record_conversion("c1", "golfnow", "p", "o-1", 500.0)  # 60.00
    assert len(store.commission_alerts) == 1
    alert = store.commission_alerts[0]
    assert alert.commission_id == commission_id
    assert alert.amount == pytest.approx(60.0)
    assert sink.sent == [alert]


@pytest.mark.asyncio
async def test_threshold_is_strict(store, rates, sink):
    ledger = CommissionLedger(store, store, rates, alert_sink=sink, high_value_threshold=25.0)
    await ledger.record_conversion("c1", "turo", "suv", "o-1", 100.0)  # exactly 25.00
    assert store.commission_alerts == []
    assert sink.sent == []


@pytest.mark.asyncio
async def test_alert_delivery_failure_does_not_fail_conversion(store, rates):
    ledger = CommissionLedger(store, store, rates, alert_sink=RecordingAlertSink(fail=True))
    commission_id = await ledger.record_conversion("c1", "golfnow", "p", "o-1", 1000.0)
    assert commission_id in store.commissions


# ── Lifecycle ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_then_pay(store, ledger):
    cid = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    approved = await ledger.approve(cid)
    assert approved.status is CommissionStatus.APPROVED
    assert approved.approved_date is not None

    paid_on = datetime(2026, 7, 1, tzinfo=timezone.utc)
    paid = await ledger.mark_paid(cid, paid_on)
    assert paid.status is CommissionStatus.PAID
    assert paid.payment_date == paid_on
    assert paid.commission_earned == 8.0


@pytest.mark.asyncio
async def test_pending_to_paid_rejected(store, ledger):
    cid = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    with pytest.raises(InvalidStateTransition) as exc:
        await ledger.mark_paid(cid)
    assert exc.value.current == "pending"
    assert store.commissions[cid].status is CommissionStatus.PENDING
    assert store.commissions[cid].payment_date is None


@pytest.mark.asyncio
async def test_reapprove_rejected(store, ledger):
    cid = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    await ledger.approve(cid)
    with pytest.raises(InvalidStateTransition):
        await ledger.approve(cid)


@pytest.mark.asyncio
async def test_mark_paid_twice_keeps_first_payment_date(store, ledger):
    cid = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    await ledger.approve(cid)
    first = datetime(2026, 7, 1, tzinfo=timezone.utc)
    await ledger.mark_paid(cid, first)
    with pytest.raises(InvalidStateTransition):
        await ledger.mark_paid(cid, datetime(2026, 8, 1, tzinfo=timezone.utc))
    assert store.commissions[cid].payment_date == first


@pytest.mark.asyncio
async def test_reject_is_terminal(store, ledger):
    cid = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    rejected = await ledger.reject(cid, "order cancelled")
    assert rejected.status is CommissionStatus.REJECTED
    assert rejected.rejection_reason == "order cancelled"
    with pytest.raises(InvalidStateTransition):
        await ledger.approve(cid)


@pytest.mark.asyncio
async def test_unknown_commission(ledger):
    with pytest.raises(CommissionNotFound):
        await ledger.approve("missing")
    with pytest.raises(CommissionNotFound):
        await ledger.get("missing")


# ── Queries ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_pending_and_history(store, ledger):
    a = await ledger.record_conversion("c1", "viator", "p", "o-1", 100.0)
    await ledger.record_conversion("c2", "amazon", "p", "o-2", 50.0, AttributionContext(
        campaign=CampaignContext(source="pinterest"), content_ref="zion", user_id="u1",
    ))
    await ledger.approve(a)

    pending = await ledger.pending()
    assert [r.vendor for r in pending] == ["amazon"]
    assert pending[0].attribution.campaign.source == "pinterest"

    assert len(await ledger.history()) == 2
    assert [r.id for r in await ledger.history(vendor=Vendor.VIATOR)] == [a]
    assert len(await ledger.history(status=CommissionStatus.APPROVED)) == 1
    assert len(await ledger.history(limit=1)) == 1
