"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for settings, before any engine module is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("REDIS_HOST", "localhost")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Actors must bind to the stub broker, never to Redis
import dramatiq
from dramatiq.brokers.stub import StubBroker

stub_broker = StubBroker()
stub_broker.emit_after("process_boot")
dramatiq.set_broker(stub_broker)

import itertools
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from affiliate_engine.config.engine_config import build_default_config
from affiliate_engine.models import (
    Affiliate,
    AffiliateCategory,
    AffiliateStatus,
    Base,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from affiliate_engine.services.events import EventBus
from affiliate_engine.services.progression.calculator import revshare_rates
from affiliate_engine.utils.datetime_utils import utc_now


@pytest.fixture
def broker():
    """Stub dramatiq broker with empty queues."""
    stub_broker.flush_all()
    return stub_broker


@pytest.fixture
def config():
    """Engine configuration snapshot with the built-in tables."""
    return build_default_config()


@pytest.fixture
def bus():
    """Event bus isolated from the global one."""
    return EventBus()


@pytest.fixture
def recorded_events(bus):
    """
    Record every engine event emitted on the test bus.

    Returns:
        list: (event_name, payload) tuples in emission order
    """
    from affiliate_engine.services.events import EngineEvents

    events = []
    for name in (
        EngineEvents.CPA_VALIDATION_COMPLETED,
        EngineEvents.COMMISSION_CREATED,
        EngineEvents.CATEGORY_CHANGED,
        EngineEvents.REVSHARE_SETTLED,
        EngineEvents.AFFILIATE_REACTIVATED,
    ):
        bus.subscribe(name, lambda data, name=name: events.append((name, data)))
    return events


@pytest.fixture
def mock_redis_client():
    """Mock Redis client for configuration source tests."""
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    return client


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    """Async session for one test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def reload(session):
    """
    Re-read an entity from the database.

    Usage:
        affiliate = await reload(Affiliate, affiliate.id)
    """

    async def _reload(model, entity_id):
        return await session.get(model, entity_id, populate_existing=True)

    return _reload


_sequence = itertools.count(1)


@pytest.fixture
def make_affiliate(session, config):
    """
    Create and commit an affiliate.

    The RevShare rates follow the category and level unless given.
    """

    async def _make(
        sponsor: Affiliate | None = None,
        category: AffiliateCategory = AffiliateCategory.JOGADOR,
        category_level: int = 1,
        total_indications: int = 0,
        direct_indications: int = 0,
        status: AffiliateStatus = AffiliateStatus.ACTIVE,
        last_activity_at: datetime | None = None,
        **fields,
    ) -> Affiliate:
        n = next(_sequence)
        rates = revshare_rates(config.category_config(category), category_level)
        data = {
            "user_id": f"user-{n}",
            "referral_code": f"CODE{n:06d}",
            "sponsor_id": sponsor.id if sponsor else None,
            "depth": sponsor.depth + 1 if sponsor else 0,
            "category": category.value,
            "category_level": category_level,
            "total_indications": total_indications,
            "direct_indications": direct_indications,
            "revshare_level1_pct": rates.level1,
            "revshare_levels2to5_pct": rates.levels2to5,
            "status": status.value,
            "last_activity_at": last_activity_at or utc_now(),
        }
        data.update(fields)
        affiliate = Affiliate(**data)
        session.add(affiliate)
        await session.commit()
        return affiliate

    return _make


@pytest.fixture
def make_chain(make_affiliate):
    """
    Create a sponsor chain, root first.

    make_chain(3) returns [root, child, grandchild]; each one sponsored
    by the previous.
    """

    async def _make(length: int, **fields) -> list[Affiliate]:
        chain = []
        sponsor = None
        for _ in range(length):
            sponsor = await make_affiliate(sponsor=sponsor, **fields)
            chain.append(sponsor)
        return chain

    return _make


@pytest.fixture
def make_transaction(session):
    """Create and commit a processed transaction."""

    async def _make(
        customer_id: str,
        affiliate: Affiliate | None,
        type: TransactionType = TransactionType.DEPOSIT,
        amount: Decimal | str = Decimal("100"),
        win_amount: Decimal | str = Decimal("0"),
        occurred_at: datetime | None = None,
        status: TransactionStatus = TransactionStatus.PROCESSED,
    ) -> Transaction:
        n = next(_sequence)
        occurred_at = occurred_at or utc_now()
        tx = Transaction(
            external_id=f"ext-{n}",
            customer_id=customer_id,
            affiliate_id=affiliate.id if affiliate else None,
            type=type.value,
            amount=Decimal(amount),
            win_amount=Decimal(win_amount),
            status=status.value,
            metadata_={},
            occurred_at=occurred_at,
            processed_at=occurred_at if status == TransactionStatus.PROCESSED else None,
        )
        session.add(tx)
        await session.commit()
        return tx

    return _make
