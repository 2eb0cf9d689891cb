"""Shared test fixtures - in-memory stores, a fresh SQLite DB per test, API client."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from affiliate_engine.api.affiliate import get_manager
from affiliate_engine.api.main import app
from affiliate_engine.db.tables import Base
from affiliate_engine.models import Content
from affiliate_engine.services.catalog import DEFAULT_CANDIDATES, tracked_products
from affiliate_engine.services.click_recorder import ClickRecorder
from affiliate_engine.services.commission_ledger import CommissionLedger
from affiliate_engine.services.inventory_monitor import InventoryMonitor
from affiliate_engine.services.orchestrator import AffiliateManager
from affiliate_engine.services.rates import RateTable, RateTableHolder
from affiliate_engine.services.revenue import RevenueReporter
from tests.fakes import FakeCatalog, InMemoryAffiliateStore, RecordingAlertSink

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)

ZION_CONTENT = Content(
    content_ref="zion-narrows-spring",
    title="Zion Narrows in Spring",
    description="Hike the river trail through the Narrows as wildflowers bloom in April.",
    tags=("hiking", "zion"),
)


@pytest.fixture
def store():
    return InMemoryAffiliateStore()


@pytest.fixture
def sink():
    return RecordingAlertSink()


@pytest.fixture
def rates():
    return RateTableHolder(RateTable())


@pytest.fixture
def ledger(store, rates, sink):
    return CommissionLedger(store, store, rates, alert_sink=sink, retry_delay=0)


@pytest.fixture
def catalog():
    return FakeCatalog(tracked_products())


@pytest.fixture
def monitor(store, catalog, sink):
    return InventoryMonitor(store, catalog, alert_sink=sink, fetch_timeout=1.0)


@pytest.fixture
def manager(store, ledger, monitor, rates):
    store.content[ZION_CONTENT.content_ref] = ZION_CONTENT
    return AffiliateManager(
        clicks=ClickRecorder(store),
        ledger=ledger,
        monitor=monitor,
        reporter=RevenueReporter(store, store),
        content=store,
        cache=store,
        rates=rates,
        candidates=DEFAULT_CANDIDATES,
    )


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory SQLite database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(manager):
    app.dependency_overrides[get_manager] = lambda: manager
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_manager, None)
