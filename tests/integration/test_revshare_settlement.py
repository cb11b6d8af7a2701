"""Integration tests for periodic RevShare settlement."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from affiliate_engine.models import (
    Affiliate,
    Commission,
    CommissionType,
    RevSharePeriod,
    RevShareSettlement,
    SettlementPeriodType,
    SettlementStatus,
    TransactionType,
)
from affiliate_engine.repositories.settlement_repository import VaultRepository
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.services.revshare_settlement import RevShareSettlementService

WEEK_1 = datetime(2024, 5, 15, tzinfo=UTC)  # settles May 6 - May 13
WEEK_2 = datetime(2024, 5, 22, tzinfo=UTC)  # settles May 13 - May 20


@pytest.fixture
def service(session, config, bus):
    return RevShareSettlementService(session, config, bus)


async def revshare_rows(session, affiliate_id=None):
    stmt = select(Commission).where(Commission.type == CommissionType.REVSHARE.value)
    if affiliate_id is not None:
        stmt = stmt.where(Commission.affiliate_id == affiliate_id)
    result = await session.execute(stmt.order_by(Commission.id))
    return list(result.scalars().all())


class TestSettlePeriod:
    """NGR, carryover and distribution."""

    @pytest.mark.asyncio
    async def test_negative_ngr_carried_into_next_period(
        self, service, session, make_chain, make_transaction, reload
    ):
        """A bonus-only week carries -240; the next week pays on 960 - 240."""
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BONUS,
            amount="250",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        first = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        assert first.affiliates_carried == 1
        assert first.commissions_created == 0
        assert first.negative_carryover == Decimal("240")
        settlement = await session.scalar(
            select(RevShareSettlement).where(RevShareSettlement.period_id == first.period_id)
        )
        assert settlement.ngr == Decimal("-240")
        assert (await reload(Affiliate, affiliate.id)).revshare_carryover == Decimal("240")

        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 15, tzinfo=UTC),
        )
        second = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_2)

        assert second.affiliates_settled == 1
        assert second.total_ngr == Decimal("720")
        rows = await revshare_rows(session, sponsor.id)
        assert len(rows) == 1
        assert rows[0].level == 1
        assert rows[0].base_amount == Decimal("720")
        assert rows[0].percentage == Decimal("1")
        assert rows[0].final_amount == Decimal("7.20")
        assert rows[0].source_affiliate_id == affiliate.id
        assert rows[0].settlement_period_id == second.period_id
        assert (await reload(Affiliate, affiliate.id)).revshare_carryover == Decimal("0")

    @pytest.mark.asyncio
    async def test_rerun_of_settled_period(
        self, service, session, make_chain, make_transaction, recorded_events
    ):
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        first = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)
        rerun = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        assert rerun.already_settled
        assert rerun.period_id == first.period_id
        assert len(await revshare_rows(session)) == 1
        period = await session.get(RevSharePeriod, first.period_id)
        assert period.status == SettlementStatus.SETTLED.value
        settled = [e for e in recorded_events if e[0] == EngineEvents.REVSHARE_SETTLED]
        assert len(settled) == 1

    @pytest.mark.asyncio
    async def test_pays_five_levels_with_category_rates(
        self, service, session, make_chain, make_transaction
    ):
        """Level 1 gets its level-1 rate, higher levels the levels-2-to-5 rate."""
        chain = await make_chain(7)
        leaf = chain[-1]
        await make_transaction(
            "cust-1",
            leaf,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        result = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        rows = await revshare_rows(session)
        assert result.commissions_created == 5
        assert sorted(row.level for row in rows) == [1, 2, 3, 4, 5]
        assert {row.final_amount for row in rows} == {Decimal("9.60")}
        assert chain[0].id not in {row.affiliate_id for row in rows}

    @pytest.mark.asyncio
    async def test_inactivity_reduction_lowers_final_amount(
        self, service, session, make_affiliate, make_transaction
    ):
        sponsor = await make_affiliate(inactivity_reduction_pct=Decimal("50"))
        affiliate = await make_affiliate(sponsor=sponsor)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        row = (await revshare_rows(session, sponsor.id))[0]
        assert row.percentage == Decimal("1")
        assert row.commission_amount == Decimal("9.60")
        assert row.final_amount == Decimal("4.80")

    @pytest.mark.asyncio
    async def test_vault_split_and_schedule(
        self, service, session, make_chain, make_transaction
    ):
        """The vault holds the period's positive NGR split 96/4."""
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        result = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        vault = await VaultRepository(session).get_for_period(result.period_id)
        assert vault.total_ngr == Decimal("960")
        assert vault.affiliates_share == Decimal("921.60")
        assert vault.rankings_share == Decimal("38.40")
        assert result.next_distribution_at == datetime(2024, 5, 13, 13, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_activity_outside_period_is_ignored(
        self, service, session, make_chain, make_transaction
    ):
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 13, tzinfo=UTC),
        )

        result = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        assert result.affiliates_settled == 0
        assert await session.scalar(select(func.count(Commission.id))) == 0


class TestCustomPeriods:
    """Explicit bounds."""

    @pytest.mark.asyncio
    async def test_custom_period(self, service, make_chain, make_transaction):
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="500",
            win_amount="100",
            occurred_at=datetime(2024, 1, 10, tzinfo=UTC),
        )

        result = await service.settle_period(
            SettlementPeriodType.CUSTOM,
            start_at=datetime(2024, 1, 1, tzinfo=UTC),
            end_at=datetime(2024, 2, 1, tzinfo=UTC),
        )

        assert result.total_ngr == Decimal("384")

    @pytest.mark.asyncio
    async def test_custom_period_needs_bounds(self, service):
        with pytest.raises(ValueError):
            await service.settle_period(SettlementPeriodType.CUSTOM)


class TestOverlappingPeriods:
    """Revenue is settled by one period only."""

    @pytest.mark.asyncio
    async def test_monthly_after_weekly_is_refused(
        self, service, session, make_chain, make_transaction, reload
    ):
        """The May month encloses a settled May week; its NGR is not paid twice."""
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="1000",
            occurred_at=datetime(2024, 5, 8, tzinfo=UTC),
        )

        weekly = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)
        monthly = await service.settle_period(
            SettlementPeriodType.MONTHLY, reference=datetime(2024, 6, 2, tzinfo=UTC)
        )

        assert monthly.overlapping_period_id == weekly.period_id
        assert monthly.period_id is None
        assert monthly.commissions_created == 0
        assert monthly.integrity_warnings

        rows = await revshare_rows(session, sponsor.id)
        assert len(rows) == 1
        assert rows[0].final_amount == Decimal("9.60")
        assert await session.scalar(select(func.count(RevSharePeriod.id))) == 1
        assert (await reload(Affiliate, affiliate.id)).revshare_carryover == Decimal("0")

    @pytest.mark.asyncio
    async def test_partially_overlapping_custom_period_is_refused(
        self, service, make_chain, make_transaction
    ):
        await make_chain(2)
        weekly = await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        result = await service.settle_period(
            SettlementPeriodType.CUSTOM,
            start_at=datetime(2024, 5, 12, tzinfo=UTC),
            end_at=datetime(2024, 5, 14, tzinfo=UTC),
        )

        assert result.overlapping_period_id == weekly.period_id

    @pytest.mark.asyncio
    async def test_adjacent_period_is_settled(self, service, make_chain, make_transaction):
        """Closed-open bounds: a period starting at the previous end does not overlap."""
        sponsor, affiliate = await make_chain(2)
        await make_transaction(
            "cust-1",
            affiliate,
            type=TransactionType.BET,
            amount="100",
            occurred_at=datetime(2024, 5, 14, tzinfo=UTC),
        )
        await service.settle_period(SettlementPeriodType.WEEKLY, reference=WEEK_1)

        result = await service.settle_period(
            SettlementPeriodType.CUSTOM,
            start_at=datetime(2024, 5, 13, tzinfo=UTC),
            end_at=datetime(2024, 5, 20, tzinfo=UTC),
        )

        assert result.overlapping_period_id is None
        assert result.total_ngr == Decimal("96")
        assert result.commissions_created == 1
