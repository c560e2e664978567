"""
Centralized Test Configuration.
"""

import tempfile
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool, Pool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
import backend.app.core.redis_client as redis_client_module
from backend.app.models.pricing_enums import PricingRuleType, ZoneType, DiscountType
from backend.app.models.pricing_rule import PricingRule
from backend.app.models.zone import Zone
from backend.app.models.promo_code import PromoCode

# File-backed SQLite so concurrent sessions get their own connections
TEST_DB_PATH = Path(tempfile.gettempdir()) / "rideon_pricing_test.db"
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"timeout": 30},
    poolclass=NullPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by the health check
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    """Factory for tests that need one session per concurrent task."""
    return TestingSessionLocal


# Pricing data factories

@pytest.fixture
def base_rule_factory(db_session):
    async def create(**overrides):
        fields = dict(
            name="Standard tariff",
            rule_type=PricingRuleType.BASE,
            base_fare=Decimal("2.50"),
            booking_fee=Decimal("1.00"),
            per_km_rate=Decimal("1.20"),
            per_minute_rate=Decimal("0.25"),
            minimum_fare=Decimal("7.00"),
            surge_multiplier=Decimal("1.00"),
            is_active=True,
        )
        fields.update(overrides)
        rule = PricingRule(**fields)
        db_session.add(rule)
        await db_session.commit()
        return rule
    return create


@pytest.fixture
def time_rule_factory(db_session):
    async def create(**overrides):
        fields = dict(
            name="Weeknight surcharge",
            rule_type=PricingRuleType.TIME_BASED,
            start_time=time(22, 0),
            end_time=time(4, 0),
            days_of_week=[1, 2, 3, 4, 5],
            surge_multiplier=Decimal("1.50"),
            is_active=True,
        )
        fields.update(overrides)
        rule = PricingRule(**fields)
        db_session.add(rule)
        await db_session.commit()
        return rule
    return create


@pytest.fixture
def zone_factory(db_session):
    async def create(**overrides):
        fields = dict(
            name="Downtown",
            zone_type=ZoneType.PREMIUM_AREA,
            coordinates=[
                {"lat": 0.0, "lng": 0.0},
                {"lat": 0.0, "lng": 1.0},
                {"lat": 1.0, "lng": 1.0},
                {"lat": 1.0, "lng": 0.0},
            ],
            pricing_multiplier=Decimal("1.50"),
            is_active=True,
        )
        fields.update(overrides)
        zone = Zone(**fields)
        db_session.add(zone)
        await db_session.commit()
        return zone
    return create


@pytest.fixture
def promo_factory(db_session):
    async def create(**overrides):
        now = datetime.now(timezone.utc)
        fields = dict(
            code="SAVE10",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            max_discount_amount=Decimal("5.00"),
            min_trip_amount=None,
            total_usage_limit=None,
            max_usage_per_user=1,
            current_usage_count=0,
            valid_from=now - timedelta(days=1),
            valid_to=now + timedelta(days=30),
            is_active=True,
        )
        fields.update(overrides)
        promo = PromoCode(**fields)
        db_session.add(promo)
        await db_session.commit()
        return promo
    return create
