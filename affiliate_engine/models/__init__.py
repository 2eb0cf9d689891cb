from affiliate_engine.models.affiliate import (  # noqa: F401
    AffiliateLink,
    AlertType,
    AttributionContext,
    Availability,
    CampaignContext,
    CandidateProduct,
    Click,
    ClientContext,
    CommissionAlert,
    CommissionRecord,
    CommissionStatus,
    Content,
    InventorySnapshot,
    PriceAlert,
    ProductKind,
    RecommendationItem,
    Timeframe,
    Vendor,
    snapshot_id,
)
