"""App settings - loaded from environment."""
from __future__ import annotations

import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # API
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "8000"))

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///affiliate.db")

    # CORS origins (comma-separated, or * for dev)
    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")
    ]

    # Commission rates - percentage vendors take a fraction (0.08 = 8%),
    # flat vendors take a fixed amount per conversion (25.00)
    COMMISSION_RATE_VIATOR = float(os.getenv("COMMISSION_RATE_VIATOR", "0.08"))
    COMMISSION_TYPE_VIATOR = os.getenv("COMMISSION_TYPE_VIATOR", "percentage")
    COMMISSION_RATE_GOLFNOW = float(os.getenv("COMMISSION_RATE_GOLFNOW", "0.12"))
    COMMISSION_TYPE_GOLFNOW = os.getenv("COMMISSION_TYPE_GOLFNOW", "percentage")
    COMMISSION_RATE_TURO = float(os.getenv("COMMISSION_RATE_TURO", "25.00"))
    COMMISSION_TYPE_TURO = os.getenv("COMMISSION_TYPE_TURO", "flat")
    COMMISSION_RATE_AMAZON = float(os.getenv("COMMISSION_RATE_AMAZON", "0.04"))
    COMMISSION_TYPE_AMAZON = os.getenv("COMMISSION_TYPE_AMAZON", "percentage")
    COMMISSION_RATE_AWIN = float(os.getenv("COMMISSION_RATE_AWIN", "0.05"))
    COMMISSION_TYPE_AWIN = os.getenv("COMMISSION_TYPE_AWIN", "percentage")
    DEFAULT_COMMISSION_RATE = float(os.getenv("DEFAULT_COMMISSION_RATE", "0.05"))

    # Commission ledger
    HIGH_VALUE_COMMISSION_THRESHOLD = float(os.getenv("HIGH_VALUE_COMMISSION_THRESHOLD", "50.00"))
    CLICK_UPDATE_ATTEMPTS = int(os.getenv("CLICK_UPDATE_ATTEMPTS", "3"))

    # Inventory sync schedule
    INVENTORY_SYNC_ENABLED = os.getenv("INVENTORY_SYNC_ENABLED", "true").lower() == "true"
    INVENTORY_FULL_SYNC_MINUTES = int(os.getenv("INVENTORY_FULL_SYNC_MINUTES", "30"))
    INVENTORY_PRICE_CHECK_MINUTES = int(os.getenv("INVENTORY_PRICE_CHECK_MINUTES", "15"))
    INVENTORY_CONCURRENCY = int(os.getenv("INVENTORY_CONCURRENCY", "5"))
    VENDOR_FETCH_TIMEOUT_SECONDS = float(os.getenv("VENDOR_FETCH_TIMEOUT_SECONDS", "8"))
    PRICE_ALERT_THRESHOLD_PCT = float(os.getenv("PRICE_ALERT_THRESHOLD_PCT", "10"))

    # Recommendations
    RECOMMENDATION_CACHE_DAYS = int(os.getenv("RECOMMENDATION_CACHE_DAYS", "7"))

    # Vendor credentials - a vendor is only synced when its credential is set
    AMAZON_ASSOCIATES_TAG = os.getenv("AMAZON_ASSOCIATES_TAG", "")
    VIATOR_API_KEY = os.getenv("VIATOR_API_KEY", "")
    VIATOR_AFFILIATE_ID = os.getenv("VIATOR_AFFILIATE_ID", "")
    GOLFNOW_API_USERNAME = os.getenv("GOLFNOW_API_USERNAME", "")
    GOLFNOW_PARTNER_ID = os.getenv("GOLFNOW_PARTNER_ID", "")
    TURO_AFFILIATE_ID = os.getenv("TURO_AFFILIATE_ID", "")
    AWIN_API_KEY = os.getenv("AWIN_API_KEY", "")

    # Vendor catalog/price API base URLs
    VENDOR_API_BASE_AMAZON = os.getenv("VENDOR_API_BASE_AMAZON", "")
    VENDOR_API_BASE_VIATOR = os.getenv("VENDOR_API_BASE_VIATOR", "")
    VENDOR_API_BASE_GOLFNOW = os.getenv("VENDOR_API_BASE_GOLFNOW", "")
    VENDOR_API_BASE_TURO = os.getenv("VENDOR_API_BASE_TURO", "")
    VENDOR_API_BASE_AWIN = os.getenv("VENDOR_API_BASE_AWIN", "")

    # Outbound alert channel (high-value commissions, stock alerts)
    ALERT_WEBHOOK_URL = os.getenv("ALERT_WEBHOOK_URL", "")

    # Observability
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

    # Logging
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
