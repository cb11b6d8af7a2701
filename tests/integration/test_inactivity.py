"""Integration tests for inactivity reductions and reactivation."""

from datetime import timedelta
from decimal import Decimal

import pytest

from affiliate_engine.models import (
    Affiliate,
    AffiliateCategory,
    AffiliateStatus,
    Indication,
)
from affiliate_engine.services.commission import CommissionDistributor
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.services.inactivity_tracker import InactivityTracker
from affiliate_engine.utils.datetime_utils import utc_now


@pytest.fixture
def sparse_config(config):
    """20% from 4 weeks, 40% from 8 weeks."""
    inactivity = config.inactivity.model_copy(
        update={"schedule": {4: Decimal("20"), 8: Decimal("40")}}
    )
    return config.model_copy(update={"inactivity": inactivity})


@pytest.fixture
def tracker(session, sparse_config, bus):
    return InactivityTracker(session, sparse_config, bus)


@pytest.fixture
def add_indication(session, make_transaction):
    """Store a validated indication for an affiliate."""

    async def _add(affiliate, customer_id, created_at=None):
        tx = await make_transaction(customer_id, affiliate)
        indication = Indication(
            affiliate_id=affiliate.id,
            customer_id=customer_id,
            transaction_id=tx.id,
        )
        if created_at is not None:
            indication.created_at = created_at
        session.add(indication)
        await session.commit()
        return indication

    return _add


class TestApplyReductions:
    """Step schedule on weeks inactive."""

    @pytest.mark.asyncio
    async def test_step_schedule(self, tracker, make_affiliate, reload):
        """50 days idle is 7 weeks (20%); 57 days is 8 weeks (40%)."""
        now = utc_now()
        seven_weeks = await make_affiliate(last_activity_at=now - timedelta(days=50))
        eight_weeks = await make_affiliate(last_activity_at=now - timedelta(days=57))
        in_grace = await make_affiliate(last_activity_at=now - timedelta(days=20))

        result = await tracker.apply_reductions(now=now)

        assert result.checked == 2
        assert {(c.affiliate_id, c.new_pct) for c in result.reduced} == {
            (seven_weeks.id, Decimal("20")),
            (eight_weeks.id, Decimal("40")),
        }

        seven_weeks = await reload(Affiliate, seven_weeks.id)
        assert seven_weeks.inactivity_reduction_pct == Decimal("20")
        assert seven_weeks.inactive_since == seven_weeks.last_activity_at + timedelta(days=30)
        assert seven_weeks.revshare_level1_pct == Decimal("1")
        assert (await reload(Affiliate, in_grace.id)).inactivity_reduction_pct == 0

    @pytest.mark.asyncio
    async def test_rerun_changes_nothing(self, tracker, make_affiliate):
        now = utc_now()
        await make_affiliate(last_activity_at=now - timedelta(days=50))

        await tracker.apply_reductions(now=now)
        rerun = await tracker.apply_reductions(now=now)

        assert rerun.reduced == []

    @pytest.mark.asyncio
    async def test_banned_affiliates_excluded(self, tracker, make_affiliate, reload):
        now = utc_now()
        banned = await make_affiliate(
            status=AffiliateStatus.BANNED, last_activity_at=now - timedelta(days=90)
        )

        result = await tracker.apply_reductions(now=now)

        assert result.checked == 0
        assert (await reload(Affiliate, banned.id)).inactivity_reduction_pct == 0


class TestReactivation:
    """New indications lift the reduction."""

    @pytest.mark.asyncio
    async def test_reactivated_by_new_indication(
        self, tracker, make_affiliate, add_indication, recorded_events, reload
    ):
        now = utc_now()
        affiliate = await make_affiliate(
            last_activity_at=now - timedelta(days=50),
            inactivity_reduction_pct=Decimal("20"),
            inactive_since=now - timedelta(days=20),
        )
        await add_indication(affiliate, "cust-new")

        result = await tracker.apply_reductions(now=now)

        assert result.reactivated == [affiliate.id]
        affiliate = await reload(Affiliate, affiliate.id)
        assert affiliate.inactivity_reduction_pct == 0
        assert affiliate.inactive_since is None
        names = [name for name, _ in recorded_events]
        assert EngineEvents.AFFILIATE_REACTIVATED in names

    @pytest.mark.asyncio
    async def test_needs_category_threshold(
        self, tracker, make_affiliate, add_indication, reload
    ):
        """Iniciante needs two new indications."""
        now = utc_now()
        affiliate = await make_affiliate(
            category=AffiliateCategory.INICIANTE,
            total_indications=12,
            direct_indications=12,
            last_activity_at=now - timedelta(days=50),
            inactivity_reduction_pct=Decimal("20"),
            inactive_since=now - timedelta(days=20),
        )
        await add_indication(affiliate, "cust-new")

        result = await tracker.apply_reductions(now=now)

        assert result.reactivated == []
        assert (await reload(Affiliate, affiliate.id)).inactivity_reduction_pct == Decimal("20")

    @pytest.mark.asyncio
    async def test_older_indications_do_not_count(
        self, tracker, make_affiliate, add_indication
    ):
        now = utc_now()
        affiliate = await make_affiliate(
            last_activity_at=now - timedelta(days=50),
            inactivity_reduction_pct=Decimal("20"),
            inactive_since=now - timedelta(days=20),
        )
        await add_indication(affiliate, "cust-old", created_at=now - timedelta(days=45))

        result = await tracker.apply_reductions(now=now)

        assert result.reactivated == []

    @pytest.mark.asyncio
    async def test_reactivated_by_cpa_validation(
        self, session, sparse_config, bus, make_affiliate, make_transaction, reload
    ):
        """A validated customer lifts the reduction right away."""
        now = utc_now()
        affiliate = await make_affiliate(
            last_activity_at=now - timedelta(days=60),
            inactivity_reduction_pct=Decimal("40"),
            inactive_since=now - timedelta(days=30),
        )
        tx = await make_transaction("cust-1", affiliate)

        await CommissionDistributor(session, sparse_config, bus).distribute_cpa(
            "cust-1", affiliate.id, tx.id
        )

        affiliate = await reload(Affiliate, affiliate.id)
        assert affiliate.inactivity_reduction_pct == 0
        assert affiliate.inactive_since is None
        assert affiliate.last_activity_at > now - timedelta(minutes=5)
