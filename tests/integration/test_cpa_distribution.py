"""Integration tests for CPA distribution across the sponsor chain."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from affiliate_engine.models import (
    Affiliate,
    AffiliateStatus,
    Commission,
    CommissionType,
    Indication,
)
from affiliate_engine.services.commission import CommissionDistributor
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.utils.exceptions import AffiliateNotFoundError, ConfigurationError


async def commissions_of(session, affiliate_id):
    result = await session.execute(
        select(Commission)
        .where(Commission.affiliate_id == affiliate_id)
        .order_by(Commission.level.desc())
    )
    return list(result.scalars().all())


class TestDistributeCPA:
    """Flat CPA amounts per level plus the direct bonus."""

    @pytest.mark.asyncio
    async def test_two_level_chain(
        self, session, config, bus, recorded_events, make_chain, make_transaction, reload
    ):
        """Direct sponsor gets 35 plus a 5 bonus, the next one 10."""
        s2, s1, affiliate = await make_chain(3)
        tx = await make_transaction("cust-1", affiliate, amount="60")

        distributor = CommissionDistributor(session, config, bus)
        result = await distributor.distribute_cpa("cust-1", affiliate.id, tx.id)

        assert result.total_amount == Decimal("50")
        assert result.counters_applied

        s1_rows = await commissions_of(session, s1.id)
        assert [(c.type, c.level, c.final_amount) for c in s1_rows] == [
            (CommissionType.CPA.value, 1, Decimal("35")),
            (CommissionType.BONUS.value, 0, Decimal("5")),
        ]
        s2_rows = await commissions_of(session, s2.id)
        assert [(c.level, c.final_amount) for c in s2_rows] == [(2, Decimal("10"))]
        assert all(c.source_affiliate_id == affiliate.id for c in s1_rows + s2_rows)
        assert all(c.customer_id == "cust-1" for c in s1_rows + s2_rows)

        s1 = await reload(Affiliate, s1.id)
        assert s1.locked_balance == Decimal("40")
        assert s1.lifetime_commissions == Decimal("40")
        assert (s1.direct_indications, s1.total_indications) == (0, 1)

        affiliate = await reload(Affiliate, affiliate.id)
        assert (affiliate.direct_indications, affiliate.total_indications) == (1, 1)
        assert (await reload(Affiliate, s2.id)).total_indications == 1

        created = [e for e in recorded_events if e[0] == EngineEvents.COMMISSION_CREATED]
        assert len(created) == 3

    @pytest.mark.asyncio
    async def test_replay_is_noop(
        self, session, config, bus, make_chain, make_transaction, reload
    ):
        """A second delivery of the same event changes nothing."""
        s2, s1, affiliate = await make_chain(3)
        tx = await make_transaction("cust-1", affiliate)
        distributor = CommissionDistributor(session, config, bus)

        await distributor.distribute_cpa("cust-1", affiliate.id, tx.id)
        replay = await distributor.distribute_cpa("cust-1", affiliate.id, tx.id)

        assert replay.is_noop
        assert replay.duplicates == 3
        assert len(await commissions_of(session, s1.id)) == 2
        assert (await reload(Affiliate, s1.id)).locked_balance == Decimal("40")
        assert (await reload(Affiliate, affiliate.id)).total_indications == 1
        count = await session.scalar(select(func.count(Indication.id)))
        assert count == 1

    @pytest.mark.asyncio
    async def test_sixth_level_is_not_paid(
        self, session, config, bus, make_chain, make_transaction
    ):
        chain = await make_chain(7)
        root, leaf = chain[0], chain[-1]
        tx = await make_transaction("cust-deep", leaf)

        result = await CommissionDistributor(session, config, bus).distribute_cpa(
            "cust-deep", leaf.id, tx.id
        )

        assert sorted(line.level for line in result.created) == [0, 1, 2, 3, 4, 5]
        assert result.total_amount == Decimal("65")
        assert await commissions_of(session, root.id) == []

    @pytest.mark.asyncio
    async def test_inactive_sponsor_is_skipped(
        self, session, config, bus, make_affiliate, make_transaction
    ):
        """An inactive level-1 sponsor is skipped; level 2 is still paid as level 2."""
        s2 = await make_affiliate()
        s1 = await make_affiliate(sponsor=s2, status=AffiliateStatus.INACTIVE)
        affiliate = await make_affiliate(sponsor=s1)
        tx = await make_transaction("cust-2", affiliate)

        result = await CommissionDistributor(session, config, bus).distribute_cpa(
            "cust-2", affiliate.id, tx.id
        )

        assert await commissions_of(session, s1.id) == []
        assert [(line.affiliate_id, line.level) for line in result.created] == [(s2.id, 2)]
        assert result.skipped[0].affiliate_id == s1.id
        assert result.skipped[0].reason == "status_inactive"

    @pytest.mark.asyncio
    async def test_root_affiliate_gets_counters_only(
        self, session, config, bus, make_affiliate, make_transaction, reload
    ):
        affiliate = await make_affiliate()
        tx = await make_transaction("cust-3", affiliate)

        result = await CommissionDistributor(session, config, bus).distribute_cpa(
            "cust-3", affiliate.id, tx.id
        )

        assert result.created == []
        assert result.counters_applied
        assert (await reload(Affiliate, affiliate.id)).direct_indications == 1


class TestDistributionErrors:
    """Fatal errors roll the whole distribution back."""

    @pytest.mark.asyncio
    async def test_missing_cpa_table(
        self, session, config, bus, make_chain, make_transaction, reload
    ):
        s1, affiliate = await make_chain(2)
        tx = await make_transaction("cust-4", affiliate)
        broken = config.model_copy(update={"cpa": None})

        with pytest.raises(ConfigurationError):
            await CommissionDistributor(session, broken, bus).distribute_cpa(
                "cust-4", affiliate.id, tx.id
            )

        assert await session.scalar(select(func.count(Commission.id))) == 0
        assert (await reload(Affiliate, affiliate.id)).total_indications == 0

    @pytest.mark.asyncio
    async def test_unknown_affiliate(self, session, config, bus, make_transaction):
        tx = await make_transaction("cust-5", None)

        with pytest.raises(AffiliateNotFoundError):
            await CommissionDistributor(session, config, bus).distribute_cpa(
                "cust-5", 31337, tx.id
            )
