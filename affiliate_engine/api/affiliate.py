"""
Affiliate API - click/conversion tracking, commissions, revenue, inventory.

Endpoints (prefix /affiliate):
- POST /track-click                       - record an outbound click
- POST /track-conversion                  - record a vendor purchase notification
- GET  /performance/{timeframe}           - click → conversion funnel
- GET  /revenue/{timeframe}               - approved-commission revenue report
- GET  /projections                       - revenue projections from the last 30 days
- GET  /top-performing                    - content ranked by commission
- GET  /utm-performance                   - commission by UTM campaign
- GET  /recommendations/content/{id}      - in-stock recommendations for a tripkit
- GET  /inventory                         - current inventory snapshots
- GET  /inventory/low-stock               - low and out of stock products
- GET  /price-alerts                      - recent price/stock alerts
- GET  /commissions                       - commission history
- GET  /commissions/pending               - commissions awaiting review
- POST /commissions/{id}/approve|reject|mark-paid
- GET  /rates                             - active commission rates
- GET  /health
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from affiliate_engine.errors import StorageUnavailable, UnknownVendor, ValidationError
from affiliate_engine.models import (
    AttributionContext,
    CampaignContext,
    ClientContext,
    CommissionStatus,
    Timeframe,
    Vendor,
)
from affiliate_engine.services.orchestrator import AffiliateManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/affiliate", tags=["affiliate"])

_manager: Optional[AffiliateManager] = None


def set_manager(manager: Optional[AffiliateManager]) -> None:
    global _manager
    _manager = manager


def get_manager() -> AffiliateManager:
    if _manager is None:
        raise HTTPException(503, "Affiliate engine not ready")
    return _manager


# ── Request bodies (snake_case or camelCase) ─────────────────────────────────

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrackClickRequest(_Body):
    vendor: str
    link_url: str
    content_ref: Optional[str] = None
    tripkit_id: Optional[str] = None
    destination_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    session_id: Optional[str] = None


class TrackConversionRequest(_Body):
    click_id: str
    vendor: str
    product_id: str = ""
    order_id: str
    order_value: float
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    content_ref: Optional[str] = None
    tripkit_id: Optional[str] = None
    destination_id: Optional[str] = None
    user_id: Optional[str] = None


class RejectRequest(_Body):
    reason: str = ""


class MarkPaidRequest(_Body):
    payment_date: Optional[datetime] = None


def _parse_vendor(vendor: Optional[str]) -> Optional[Vendor]:
    if not vendor:
        return None
    try:
        return Vendor.parse(vendor)
    except UnknownVendor as e:
        raise ValidationError(str(e)) from e


# ── Tracking ─────────────────────────────────────────────────────────────────

@router.post("/track-click")
async def track_click(
    body: TrackClickRequest,
    request: Request,
    manager: AffiliateManager = Depends(get_manager),
):
    """Record a click. Storage outages do not break the redirect: the caller
    gets ``success: false`` with a warning and should carry on."""
    client = ClientContext(
        user_agent=body.user_agent or request.headers.get("user-agent", ""),
        ip_address=body.ip or (request.client.host if request.client else ""),
        referrer=body.referrer or request.headers.get("referer", ""),
    )
    campaign = CampaignContext(body.utm_source, body.utm_medium, body.utm_campaign)
    try:
        click_id = await manager.track_click(
            body.vendor,
            body.link_url,
            client,
            campaign,
            content_ref=body.content_ref or body.tripkit_id or body.destination_id,
            session_id=body.session_id,
        )
    except StorageUnavailable as e:
        logger.warning(f"Click not recorded, storage unavailable: {e}")
        return {"success": False, "warning": "Click tracking temporarily unavailable"}
    return {"success": True, "click_id": click_id}


@router.post("/track-conversion")
async def track_conversion(
    body: TrackConversionRequest,
    manager: AffiliateManager = Depends(get_manager),
):
    attribution = AttributionContext(
        campaign=CampaignContext(body.utm_source, body.utm_medium, body.utm_campaign),
        content_ref=body.content_ref or body.tripkit_id or body.destination_id,
        user_id=body.user_id,
    )
    commission_id = await manager.track_conversion(
        body.click_id,
        body.vendor,
        body.product_id,
        body.order_id,
        body.order_value,
        attribution,
    )
    return {"success": True, "commission_id": commission_id}


# ── Reporting ────────────────────────────────────────────────────────────────

@router.get("/performance/{timeframe}")
async def performance(timeframe: Timeframe, manager: AffiliateManager = Depends(get_manager)):
    return await manager.performance(timeframe)


@router.get("/revenue/{timeframe}")
async def revenue(timeframe: Timeframe, manager: AffiliateManager = Depends(get_manager)):
    report = await manager.revenue_report(timeframe)
    return report.to_dict()


@router.get("/projections")
async def projections(manager: AffiliateManager = Depends(get_manager)):
    return await manager.projections()


@router.get("/top-performing")
async def top_performing(
    limit: int = Query(10, ge=1, le=100),
    manager: AffiliateManager = Depends(get_manager),
):
    return {"content": await manager.top_content(limit)}


@router.get("/utm-performance")
async def utm_performance(manager: AffiliateManager = Depends(get_manager)):
    return {"campaigns": await manager.utm_performance()}


# ── Recommendations & inventory ──────────────────────────────────────────────

@router.get("/recommendations/content/{content_id}")
async def content_recommendations(
    content_id: str,
    preferences: Optional[str] = Query(None, description="JSON object, e.g. {\"budget\": 150}"),
    manager: AffiliateManager = Depends(get_manager),
):
    prefs = None
    if preferences:
        try:
            prefs = json.loads(preferences)
        except json.JSONDecodeError as e:
            raise ValidationError(f"preferences is not valid JSON: {e.msg}") from e
        if not isinstance(prefs, dict):
            raise ValidationError("preferences must be a JSON object")
    return await manager.recommendation_summary(content_id, prefs)


@router.get("/inventory")
async def inventory(
    vendor: Optional[str] = None,
    category: Optional[str] = None,
    manager: AffiliateManager = Depends(get_manager),
):
    items = await manager.inventory(_parse_vendor(vendor), category)
    return {"items": [i.to_dict() for i in items], "total": len(items)}


@router.get("/inventory/low-stock")
async def low_stock(manager: AffiliateManager = Depends(get_manager)):
    items = await manager.low_stock()
    return {"items": [i.to_dict() for i in items], "total": len(items)}


@router.get("/price-alerts")
async def price_alerts(
    limit: int = Query(10, ge=1, le=200),
    manager: AffiliateManager = Depends(get_manager),
):
    alerts = await manager.price_alerts(limit)
    return {"alerts": [a.to_dict() for a in alerts]}


# ── Commissions ──────────────────────────────────────────────────────────────

@router.get("/commissions")
async def commission_history(
    vendor: Optional[str] = None,
    status: Optional[CommissionStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    manager: AffiliateManager = Depends(get_manager),
):
    records = await manager.commission_history(vendor=vendor, status=status, limit=limit)
    return {"commissions": [r.to_dict() for r in records]}


@router.get("/commissions/pending")
async def pending_commissions(manager: AffiliateManager = Depends(get_manager)):
    records = await manager.pending_commissions()
    return {"commissions": [r.to_dict() for r in records], "total": len(records)}


@router.post("/commissions/{commission_id}/approve")
async def approve_commission(commission_id: str, manager: AffiliateManager = Depends(get_manager)):
    record = await manager.approve_commission(commission_id)
    return {"success": True, "commission": record.to_dict()}


@router.post("/commissions/{commission_id}/reject")
async def reject_commission(
    commission_id: str,
    body: Optional[RejectRequest] = None,
    manager: AffiliateManager = Depends(get_manager),
):
    record = await manager.reject_commission(commission_id, body.reason if body else "")
    return {"success": True, "commission": record.to_dict()}


@router.post("/commissions/{commission_id}/mark-paid")
async def mark_commission_paid(
    commission_id: str,
    body: Optional[MarkPaidRequest] = None,
    manager: AffiliateManager = Depends(get_manager),
):
    record = await manager.mark_commission_paid(
        commission_id, body.payment_date if body else None
    )
    return {"success": True, "commission": record.to_dict()}


# ── Meta ─────────────────────────────────────────────────────────────────────

@router.get("/rates")
async def rates(manager: AffiliateManager = Depends(get_manager)):
    return manager.rates.current().to_dict()


@router.get("/health")
async def affiliate_health(manager: AffiliateManager = Depends(get_manager)):
    return {
        "status": "ok",
        "inventory_sync": "stopping" if manager.monitor.stop_requested else "running",
        "vendors": [v.value for v in Vendor],
    }
