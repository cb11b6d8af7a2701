"""
Inactivity and reactivation tracker.

Dormant affiliates get a RevShare reduction that grows with the weeks
without activity. The reduction is stored apart from the base
percentages, so reactivation only has to clear it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from affiliate_engine.models.affiliate import Affiliate
from affiliate_engine.models.enums import AffiliateCategory
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.indication_repository import IndicationRepository
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.utils.datetime_utils import ensure_utc, utc_now


@dataclass(frozen=True)
class ReductionChange:
    """Reduction applied to one affiliate by a tracker run."""

    affiliate_id: int
    weeks_inactive: int
    old_pct: Decimal
    new_pct: Decimal


@dataclass
class InactivityRunResult:
    """Outcome of a tracker run."""

    checked: int = 0
    reduced: list[ReductionChange] = field(default_factory=list)
    reactivated: list[int] = field(default_factory=list)


def weeks_inactive(last_activity_at: datetime, now: datetime) -> int:
    """Whole weeks elapsed since the last activity."""
    days = (ensure_utc(now) - ensure_utc(last_activity_at)).days
    return max(days, 0) // 7


class InactivityTracker(BaseService):
    """Apply and lift inactivity reductions."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.affiliate_repo = AffiliateRepository(self.session)
        self.indication_repo = IndicationRepository(self.session)

    @transaction
    async def apply_reductions(self, now: datetime | None = None) -> InactivityRunResult:
        """
        Run the daily inactivity pass.

        Affiliates under a reduction are first checked for reactivation;
        then every affiliate idle for longer than the grace period gets
        the reduction of the highest schedule step not above its weeks
        inactive.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            InactivityRunResult
        """
        now = ensure_utc(now or utc_now())
        result = InactivityRunResult()

        for affiliate in await self.affiliate_repo.find_under_reduction():
            if await self._reactivate_if_due(affiliate, now):
                result.reactivated.append(affiliate.id)

        grace = timedelta(days=self.config.inactivity.grace_days)
        for affiliate in await self.affiliate_repo.find_dormant(now - grace):
            result.checked += 1
            change = self._apply_reduction(affiliate, now)
            if change is not None:
                result.reduced.append(change)

        await self.session.flush()
        self.logger.info(
            "Inactivity pass completed",
            extra={
                "checked": result.checked,
                "reduced": len(result.reduced),
                "reactivated": len(result.reactivated),
            },
        )
        return result

    async def check_reactivation(
        self, affiliate_id: int, now: datetime | None = None
    ) -> bool:
        """
        Lift the reduction of an affiliate once it has enough new indications.

        Runs inside the caller's transaction.

        Returns:
            True if the affiliate was reactivated by this call
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if affiliate is None or affiliate.inactive_since is None:
            return False
        reactivated = await self._reactivate_if_due(
            affiliate, ensure_utc(now or utc_now())
        )
        if reactivated:
            await self.session.flush()
        return reactivated

    def required_indications(self, category: str) -> int:
        """New indications needed to lift a reduction in a category."""
        try:
            key = AffiliateCategory(category)
        except ValueError:
            key = AffiliateCategory.default()
        return self.config.inactivity.reactivation[key]

    def _apply_reduction(self, affiliate: Affiliate, now: datetime) -> ReductionChange | None:
        weeks = weeks_inactive(affiliate.last_activity_at, now)
        new_pct = self.config.inactivity.reduction_for(weeks)
        old_pct = Decimal(affiliate.inactivity_reduction_pct)
        if new_pct == old_pct:
            return None

        affiliate.inactivity_reduction_pct = new_pct
        if affiliate.inactive_since is None and new_pct > 0:
            affiliate.inactive_since = ensure_utc(affiliate.last_activity_at) + timedelta(
                days=self.config.inactivity.grace_days
            )

        self.logger.info(
            "Inactivity reduction applied",
            extra={
                "affiliate_id": affiliate.id,
                "weeks_inactive": weeks,
                "old_pct": str(old_pct),
                "new_pct": str(new_pct),
            },
        )
        return ReductionChange(affiliate.id, weeks, old_pct, new_pct)

    async def _reactivate_if_due(self, affiliate: Affiliate, now: datetime) -> bool:
        required = self.required_indications(affiliate.category)
        new_indications = await self.indication_repo.count_since(
            affiliate.id, affiliate.inactive_since
        )
        if new_indications < required:
            return False

        previous_pct = Decimal(affiliate.inactivity_reduction_pct)
        affiliate.inactivity_reduction_pct = Decimal("0")
        affiliate.inactive_since = None
        affiliate.last_activity_at = now

        self.queue_event(
            EngineEvents.AFFILIATE_REACTIVATED,
            {
                "affiliate_id": affiliate.id,
                "new_indications": new_indications,
                "previous_reduction_pct": str(previous_pct),
            },
        )
        self.logger.info(
            "Affiliate reactivated",
            extra={
                "affiliate_id": affiliate.id,
                "new_indications": new_indications,
                "required": required,
            },
        )
        return True
