#!/usr/bin/env python3
"""Affiliate engine CLI - operator tasks outside the API.

Usage:
  python scripts/affiliate_cli.py init               # Create tables (dev; prod uses alembic)
  python scripts/affiliate_cli.py seed-content       # Load sample tripkits into content_items
  python scripts/affiliate_cli.py sync [mode]        # Run one inventory cycle (full | price_check)
  python scripts/affiliate_cli.py report [period]    # Print revenue report (day|week|month|quarter|year)
  python scripts/affiliate_cli.py recommend <id>     # Print recommendations for a tripkit
"""
import asyncio
import json
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

SAMPLE_CONTENT = [
    {
        "id": "zion-narrows-spring",
        "title": "Zion Narrows in Spring",
        "description": "Hike the river trail through the Narrows as wildflowers bloom in April.",
        "tags": ["hiking", "zion", "river"],
    },
    {
        "id": "park-city-powder",
        "title": "Park City Powder Weekend",
        "description": "Ski resort days and snow-covered evenings in January.",
        "tags": ["skiing", "winter"],
    },
    {
        "id": "wasatch-back-golf",
        "title": "Wasatch Back Golf Getaway",
        "description": "Tee times at mountain courses across the Heber Valley in summer.",
        "tags": ["golf"],
    },
]


def _manager():
    from affiliate_engine.db.engine import async_session
    from affiliate_engine.services.orchestrator import AffiliateManager
    return AffiliateManager.from_settings(async_session)


async def cmd_init():
    from affiliate_engine.db.engine import init_db
    await init_db()
    print("✅ Tables created")


async def cmd_seed_content():
    from affiliate_engine.db.engine import async_session, init_db
    from affiliate_engine.db.tables import ContentItemRow

    await init_db()
    async with async_session() as session:
        for item in SAMPLE_CONTENT:
            await session.merge(ContentItemRow(**item))
        await session.commit()
    print(f"✅ Seeded {len(SAMPLE_CONTENT)} content items")


async def cmd_sync(mode: str = "full"):
    from affiliate_engine.services.inventory_monitor import SyncMode
    result = await _manager().sync_inventory(SyncMode(mode))
    print(json.dumps(result.to_dict(), indent=2))


async def cmd_report(period: str = "month"):
    report = await _manager().revenue_report(period)

    print("=" * 60)
    print(f"  Affiliate Revenue Report — last {report.period.value}")
    print("=" * 60)
    print(f"  💰 Commission: ${report.total_commission:>10.2f}")
    print(f"     Revenue:    ${report.total_revenue:>10.2f}")
    print(f"     Orders:     {report.conversion_count:>11,}")
    print(f"     AOV:        ${report.avg_order_value:>10.2f}")
    print()
    print("  🏷️  By Vendor")
    data = report.to_dict()
    for vendor, stats in sorted(data["vendor_breakdown"].items(), key=lambda x: -x[1]["commission"]):
        print(f"     {vendor:<10} ${stats['commission']:>9.2f}  ({stats['conversions']} orders)")
    if data["content_performance"]:
        print()
        print("  🗺️  By Content")
        for ref, stats in sorted(data["content_performance"].items(), key=lambda x: -x[1]["commission"]):
            print(f"     {ref:<30} ${stats['commission']:>9.2f}")
    print("=" * 60)


async def cmd_recommend(content_id: str):
    summary = await _manager().recommendation_summary(content_id)
    print(json.dumps(summary, indent=2))


COMMANDS = {
    "init": cmd_init,
    "seed-content": cmd_seed_content,
    "sync": cmd_sync,
    "report": cmd_report,
    "recommend": cmd_recommend,
}


def main():
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(__doc__)
        sys.exit(1)
    from affiliate_engine.logging_config import setup_logging
    setup_logging()
    asyncio.run(COMMANDS[sys.argv[1]](*sys.argv[2:]))


if __name__ == "__main__":
    main()
