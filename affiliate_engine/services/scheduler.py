"""Scheduled inventory sync using APScheduler."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from affiliate_engine.services.inventory_monitor import InventoryMonitor, SyncMode

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()
_monitor: Optional[InventoryMonitor] = None


async def scheduled_sync(mode: str = SyncMode.FULL.value):
    """Run one inventory cycle; never lets an error kill the job."""
    if _monitor is None or _monitor.stop_requested:
        return
    try:
        await _monitor.run_cycle(SyncMode(mode))
    except Exception:
        logger.exception(f"Scheduled inventory {mode} sync failed")


def start_scheduler(
    monitor: InventoryMonitor,
    full_sync_minutes: int = 30,
    price_check_minutes: int = 15,
):
    """Start the background scheduler for both inventory cycles."""
    global _monitor
    _monitor = monitor
    monitor.resume()
    common = {"max_instances": 1, "coalesce": True, "replace_existing": True}
    scheduler.add_job(
        scheduled_sync,
        trigger=IntervalTrigger(minutes=full_sync_minutes),
        kwargs={"mode": SyncMode.FULL.value},
        id="inventory_full_sync",
        name="Full inventory sync",
        **common,
    )
    scheduler.add_job(
        scheduled_sync,
        trigger=IntervalTrigger(minutes=price_check_minutes),
        kwargs={"mode": SyncMode.PRICE_CHECK.value},
        id="inventory_price_check",
        name="Inventory price check",
        **common,
    )
    if not scheduler.running:
        scheduler.start()
    logger.info(
        f"Scheduler started - full sync every {full_sync_minutes}m, "
        f"price check every {price_check_minutes}m"
    )


async def stop_scheduler(timeout: float = 30.0):
    """Stop new runs, let the in-flight cycle finish its batch, then shut down."""
    if _monitor is not None:
        _monitor.request_stop()
    if scheduler.running:
        scheduler.pause()
    if _monitor is not None:
        try:
            await _monitor.wait_idle(timeout)
        except asyncio.TimeoutError:
            logger.warning("Inventory cycle still running at shutdown")
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
