"""Startup validation - surface misconfiguration before serving traffic."""
from __future__ import annotations

import logging

from affiliate_engine.models import Vendor
from affiliate_engine.services.rates import RateKind

logger = logging.getLogger(__name__)


def validate_settings(settings=None) -> list[str]:
    """Return a list of warnings (empty = all good) and log each one.

    Raises ValueError when a commission rate cannot be used at all.
    """
    if settings is None:
        from config.settings import settings
    warnings: list[str] = []
    is_prod = settings.DATABASE_URL and "sqlite" not in settings.DATABASE_URL

    for vendor in Vendor:
        kind = getattr(settings, f"COMMISSION_TYPE_{vendor.name}")
        value = getattr(settings, f"COMMISSION_RATE_{vendor.name}")
        try:
            kind = RateKind(kind.lower())
        except ValueError:
            raise ValueError(f"COMMISSION_TYPE_{vendor.name} must be 'percentage' or 'flat', got {kind!r}")
        if value < 0:
            raise ValueError(f"COMMISSION_RATE_{vendor.name} must not be negative")
        if kind is RateKind.PERCENTAGE and value > 1:
            warnings.append(
                f"COMMISSION_RATE_{vendor.name}={value} looks like a percent, expected a fraction (0.08 = 8%)"
            )

    if is_prod and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to * - restrict in production")

    if not any([
        settings.AMAZON_ASSOCIATES_TAG,
        settings.VIATOR_API_KEY,
        settings.GOLFNOW_API_USERNAME,
        settings.TURO_AFFILIATE_ID,
        settings.AWIN_API_KEY,
    ]):
        warnings.append("No vendor credentials configured - inventory sync will poll nothing")

    if not settings.ALERT_WEBHOOK_URL:
        warnings.append("ALERT_WEBHOOK_URL not set - alerts go to the log only")

    if settings.INVENTORY_PRICE_CHECK_MINUTES > settings.INVENTORY_FULL_SYNC_MINUTES:
        warnings.append("Price check runs less often than the full sync")

    for w in warnings:
        logger.warning("⚠️  %s", w)
    if not warnings:
        logger.info("✅ All startup checks passed")
    return warnings
