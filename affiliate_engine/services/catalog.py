"""
Utah recommendation catalog.
---
Gear (Amazon), guided activities (Viator), tee times (GolfNow) and rental
vehicles (Turo) that can be recommended next to a tripkit. Product ids are
the vendor's own ids so each candidate joins against its inventory snapshot.
"""
from __future__ import annotations

from affiliate_engine.models import CandidateProduct, ProductKind, Vendor
from affiliate_engine.services.vendor_clients import TrackedProduct

GEAR = ProductKind.GEAR
ACTIVITY = ProductKind.ACTIVITY
TRANSPORT = ProductKind.TRANSPORTATION

THREE_SEASON = ("spring", "summer", "fall")

DEFAULT_CANDIDATES: tuple[CandidateProduct, ...] = (
    # ── Gear ─────────────────────────────────────────────────────────────────
    CandidateProduct(
        "B07QFZL2CY", Vendor.AMAZON, "Merrell Moab 2 Waterproof Hiking Boots", GEAR,
        ("hiking",), "Waterproof boots for slickrock and river crossings",
        price=100.0, seasons=("spring", "fall"), gear_type="footwear", rating=4.6,
    ),
    CandidateProduct(
        "B0855LV1X4", Vendor.AMAZON, "Osprey Atmos AG 65 Backpack", GEAR,
        ("hiking", "camping"), "Multi-day pack for the backcountry",
        price=240.0, seasons=("summer",), gear_type="backpack", rating=4.8,
    ),
    CandidateProduct(
        "B08GFP15WF", Vendor.AMAZON, "REI Co-op Half Dome 2 Plus Tent", GEAR,
        ("camping",), "Two-person tent for desert and alpine sites",
        price=175.0, seasons=THREE_SEASON, gear_type="shelter", rating=4.7,
    ),
    CandidateProduct(
        "B08F9VPKM6", Vendor.AMAZON, "Oakley Flight Deck Goggles", GEAR,
        ("skiing", "winter"), "Wide field of view for Wasatch powder days",
        price=215.0, seasons=("winter",), gear_type="eyewear", rating=4.7,
    ),
    CandidateProduct(
        "B09ZQH3T8K", Vendor.AMAZON, "DJI Mini 3 Pro Drone", GEAR,
        ("photography",), "Lightweight drone for aerial canyon shots",
        price=825.0, seasons=(), gear_type="electronics", rating=4.6,
    ),
    CandidateProduct(
        "B07WC4PRGP", Vendor.AMAZON, "Black Diamond Distance Carbon FLZ Poles", GEAR,
        ("hiking",), "Folding poles for steep switchbacks",
        price=170.0, seasons=("spring", "fall"), gear_type="hiking", rating=4.5,
    ),
    CandidateProduct(
        "B08RZ4KH5D", Vendor.AMAZON, "CamelBak MULE Hydration Pack", GEAR,
        ("biking", "hiking"), "Three liters of water for hot desert rides",
        price=110.0, seasons=("summer",), gear_type="hydration", rating=4.6,
    ),
    CandidateProduct(
        "B07GDGPZ5Q", Vendor.AMAZON, "Giro Chronicle MIPS Helmet", GEAR,
        ("biking",), "Trail helmet for Moab singletrack",
        price=150.0, seasons=("summer", "fall"), gear_type="biking", rating=4.5,
    ),
    # ── Activities ───────────────────────────────────────────────────────────
    CandidateProduct(
        "zion-narrows-hike", Vendor.VIATOR, "Zion National Park Guided Hike", ACTIVITY,
        ("hiking", "water"), "Explore the Narrows with expert guides",
        price=89.0, seasons=THREE_SEASON, rating=4.8, location="Zion National Park",
    ),
    CandidateProduct(
        "arches-photography", Vendor.VIATOR, "Arches National Park Photography Tour", ACTIVITY,
        ("photography", "hiking"), "Capture stunning red rock formations",
        price=125.0, seasons=("spring", "fall"), rating=4.9, location="Moab",
    ),
    CandidateProduct(
        "bryce-canyon-tour", Vendor.VIATOR, "Bryce Canyon Scenic Tour", ACTIVITY,
        ("hiking", "photography"), "Hoodoo viewpoints and rim trail walk",
        price=110.0, seasons=THREE_SEASON, rating=4.7, location="Bryce Canyon",
    ),
    CandidateProduct(
        "park-city-ski", Vendor.VIATOR, "Park City Mountain Resort Ski Pass", ACTIVITY,
        ("skiing", "winter"), "Access to world-class skiing",
        price=189.0, seasons=("winter",), rating=4.7, location="Park City",
    ),
    CandidateProduct(
        "wasatch-mountain", Vendor.GOLFNOW, "Wasatch Mountain Golf Course", ACTIVITY,
        ("golf",), "Scenic mountain golf experience",
        price=75.0, seasons=THREE_SEASON, rating=4.4, location="Midway",
    ),
    CandidateProduct(
        "soldier-hollow", Vendor.GOLFNOW, "Soldier Hollow Golf Course", ACTIVITY,
        ("golf",), "Thirty-six holes above the Heber Valley",
        price=65.0, seasons=THREE_SEASON, rating=4.5, location="Midway",
    ),
    CandidateProduct(
        "glenwild", Vendor.GOLFNOW, "Glenwild Golf Club", ACTIVITY,
        ("golf",), "Tom Fazio design minutes from Park City",
        price=150.0, seasons=("summer",), rating=4.6, location="Park City",
    ),
    CandidateProduct(
        "promontory", Vendor.GOLFNOW, "Promontory Club", ACTIVITY,
        ("golf",), "Pete Dye and Nicklaus courses on the Wasatch Back",
        price=175.0, seasons=("summer",), rating=4.6, location="Park City",
    ),
    # ── Transportation ───────────────────────────────────────────────────────
    CandidateProduct(
        "slc-adventure-suv", Vendor.TURO, "Utah Adventure Vehicle", TRANSPORT,
        ("hiking", "camping", "photography"), "SUV for exploring Utah's backcountry",
        price=65.0, seasons=THREE_SEASON, location="Salt Lake City",
    ),
    CandidateProduct(
        "slc-winter-4wd", Vendor.TURO, "Canyon-Ready 4WD", TRANSPORT,
        ("skiing", "winter"), "Four-wheel drive with snow tires for the Cottonwoods",
        price=95.0, seasons=("winter",), location="Salt Lake City",
    ),
)


def inventory_category(candidate: CandidateProduct) -> str:
    if candidate.kind is ProductKind.GEAR:
        return candidate.gear_type or "gear"
    return candidate.kind.value


def tracked_products(candidates=DEFAULT_CANDIDATES) -> list[TrackedProduct]:
    """Products the inventory monitor polls: everything we can recommend."""
    return [
        TrackedProduct(
            vendor=c.vendor,
            product_id=c.product_id,
            name=c.name,
            category=inventory_category(c),
            location=c.location,
        )
        for c in candidates
    ]


def find_candidate(vendor: Vendor, product_id: str, candidates=DEFAULT_CANDIDATES):
    for c in candidates:
        if c.vendor is vendor and c.product_id == product_id:
            return c
    return None
