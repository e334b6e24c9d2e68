# tests/conftest.py
import os
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from dinkassa_sync.core.config import Settings, clear_settings_cache
from dinkassa_sync.database import Base
from dinkassa_sync.integrations.locks import get_lock, reset_locks
from dinkassa_sync.services.reconciliation import ResponseReconciler
from tests.mocks.memory_store import InMemoryDeletedItemTracker, InMemoryMetaStore, MockStorefront

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "")


@pytest.fixture(autouse=True)
def isolated_state():
    """Fresh lock registry and settings cache for every test"""
    reset_locks()
    clear_settings_cache()
    yield
    reset_locks()
    clear_settings_cache()


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DINKASSA_API_URL="https://api.dinkassa.test/v1",
        MACHINE_ID="machine-1",
        MACHINE_KEY="secret-key",
        INTEGRATOR_ID="integrator-1",
        LOG_WC_EVENTS=False,
    )


@pytest.fixture
def product_meta():
    return InMemoryMetaStore()


@pytest.fixture
def category_meta():
    return InMemoryMetaStore()


@pytest.fixture
def deleted_items():
    return InMemoryDeletedItemTracker()


@pytest.fixture
def storefront():
    return MockStorefront(product_ids=[7])


@pytest.fixture
def stock_lock(settings):
    return get_lock(settings.STOCK_LOCK_NAME)


@pytest.fixture
def reconciler(settings, product_meta, category_meta, deleted_items, storefront, stock_lock):
    return ResponseReconciler(
        product_meta=product_meta,
        category_meta=category_meta,
        deleted_items=deleted_items,
        storefront=storefront,
        stock_lock=stock_lock,
        settings=settings,
    )


@pytest.fixture
async def test_engine():
    """Create and configure the test database engine (function-scoped)."""
    if not TEST_DATABASE_URL:
        pytest.skip("TEST_DATABASE_URL not set")
    engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test database"""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
