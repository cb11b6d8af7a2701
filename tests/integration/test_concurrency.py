"""Integration tests for concurrent workers on the same transaction or period."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from affiliate_engine.models import (
    Affiliate,
    Base,
    Commission,
    CommissionType,
    CPAValidation,
    Indication,
    RevSharePeriod,
    RevShareSettlement,
    SettlementPeriodType,
    SettlementStatus,
    Transaction,
    TransactionType,
)
from affiliate_engine.services.commission import CommissionDistributor
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.services.revshare_settlement import RevShareSettlementService
from affiliate_engine.services.transaction_ingestion import (
    TransactionIngestionService,
    TransactionPayload,
)
from affiliate_engine.utils.datetime_utils import utc_now

WEEK_1 = datetime(2024, 5, 15, tzinfo=UTC)  # settles May 6 - May 13


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite database shared by every session.

    Sessions share the single connection, so releasing one of them must
    not roll back the work of the other.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        pool_reset_on_return=None,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def worker_sessions(session_maker):
    """Two independent sessions, one per simulated worker."""
    async with session_maker() as first, session_maker() as second:
        yield first, second


async def count(session, column, *criteria):
    stmt = select(func.count(column))
    if criteria:
        stmt = stmt.where(*criteria)
    return await session.scalar(stmt)


class TestConcurrentIngestion:
    """Two workers receive the same feed delivery."""

    @pytest.mark.asyncio
    async def test_same_payload_processed_once(
        self, worker_sessions, session, config, bus, make_chain, recorded_events, reload
    ):
        sponsor, affiliate = await make_chain(2)
        event = TransactionPayload(
            external_id="feed-concurrent-1",
            customer_id="cust-1",
            affiliate_id=affiliate.id,
            type=TransactionType.DEPOSIT,
            amount=Decimal("60"),
            occurred_at=utc_now(),
        )

        results = await asyncio.gather(
            *(
                TransactionIngestionService(worker, config, bus).ingest(event)
                for worker in worker_sessions
            )
        )

        assert sorted(result.processed for result in results) == [False, True]
        assert sum(result.duplicate for result in results) == 1
        assert results[0].transaction_id == results[1].transaction_id

        assert await count(session, Transaction.id) == 1
        assert await count(session, CPAValidation.id) == 1
        assert await count(session, Indication.id) == 1
        assert await count(session, Commission.id) == 2

        affiliate = await reload(Affiliate, affiliate.id)
        sponsor = await reload(Affiliate, sponsor.id)
        assert affiliate.direct_indications == 1
        assert affiliate.total_indications == 1
        assert sponsor.total_indications == 1
        assert sponsor.locked_balance == Decimal("40")

        names = [name for name, _ in recorded_events]
        assert names.count(EngineEvents.CPA_VALIDATION_COMPLETED) == 1
        assert names.count(EngineEvents.COMMISSION_CREATED) == 2


class TestConcurrentCPADistribution:
    """Two workers distribute CPA for the same transaction."""

    @pytest.mark.asyncio
    async def test_one_set_of_rows(
        self, worker_sessions, session, config, bus, make_chain, make_transaction, reload
    ):
        s1, s2, affiliate = await make_chain(3)
        tx = await make_transaction("cust-1", affiliate, amount="60")

        results = await asyncio.gather(
            *(
                CommissionDistributor(worker, config, bus).distribute_cpa(
                    "cust-1", affiliate.id, tx.id
                )
                for worker in worker_sessions
            )
        )

        created = [line for result in results for line in result.created]
        assert len(created) == 3
        assert sum(result.counters_applied for result in results) == 1

        assert await count(session, Commission.id, Commission.transaction_id == tx.id) == 3
        assert await count(session, Indication.id) == 1

        affiliate = await reload(Affiliate, affiliate.id)
        s1 = await reload(Affiliate, s1.id)
        s2 = await reload(Affiliate, s2.id)
        assert affiliate.direct_indications == 1
        assert s1.total_indications == 1
        assert s2.total_indications == 1
        assert s2.locked_balance == Decimal("40")
        assert s1.locked_balance == Decimal("10")


class TestConcurrentSettlement:
    """Two workers settle the same period."""

    @pytest.mark.asyncio
    async def test_period_settled_once(
        self,
        worker_sessions,
        session,
        config,
        bus,
        make_chain,
        make_transaction,
        recorded_events,
        reload,
    ):
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        results = await asyncio.gather(
            *(
                RevShareSettlementService(worker, config, bus).settle_period(
                    SettlementPeriodType.WEEKLY, reference=WEEK_1
                )
                for worker in worker_sessions
            )
        )

        assert sorted(result.already_settled for result in results) == [False, True]
        assert results[0].period_id == results[1].period_id

        assert await count(session, RevSharePeriod.id) == 1
        assert await count(session, RevShareSettlement.id) == 1
        revshare = await session.scalars(
            select(Commission).where(
                Commission.type == CommissionType.REVSHARE.value,
                Commission.affiliate_id == sponsor.id,
            )
        )
        rows = list(revshare.all())
        assert len(rows) == 1
        assert rows[0].final_amount == Decimal("9.60")

        period = await reload(RevSharePeriod, results[0].period_id)
        assert period.status == SettlementStatus.SETTLED.value

        names = [name for name, _ in recorded_events]
        assert names.count(EngineEvents.REVSHARE_SETTLED) == 1
