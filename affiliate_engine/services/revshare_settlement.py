"""
RevShare settlement.

Settles one period: computes NGR per affiliate from its customers'
activity, nets it against the negative carryover of earlier periods,
distributes positive amounts up the sponsor chain and fills the period's
vault. Re-running a settled period is a no-op, and a period overlapping
a settled one is never settled.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from affiliate_engine.models.enums import SettlementPeriodType
from affiliate_engine.models.settlement import RevSharePeriod
from affiliate_engine.models.vault import Vault
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.settlement_repository import (
    RevSharePeriodRepository,
    RevShareSettlementRepository,
    VaultRepository,
)
from affiliate_engine.repositories.transaction_repository import (
    AffiliateRevenue,
    TransactionRepository,
)
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.commission.distributor import CommissionDistributor
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.utils.datetime_utils import (
    ensure_utc,
    next_distribution_at,
    period_bounds,
    utc_now,
)
from affiliate_engine.utils.money import percent_of, quantize_money


@dataclass(frozen=True)
class NGRComputation:
    """NGR of one affiliate for one period, after carryover."""

    ggr: Decimal
    bonuses: Decimal
    ngr: Decimal
    carryover_in: Decimal
    settled_ngr: Decimal
    carryover_out: Decimal


@dataclass(frozen=True)
class VaultSplit:
    """Vault amounts for a period."""

    total_ngr: Decimal
    affiliates_share: Decimal
    rankings_share: Decimal


@dataclass
class SettlementResult:
    """Outcome of a period settlement."""

    period_id: int | None
    start_at: datetime
    end_at: datetime
    already_settled: bool = False
    overlapping_period_id: int | None = None
    affiliates_settled: int = 0
    affiliates_carried: int = 0
    total_ngr: Decimal = Decimal("0")
    total_distributed: Decimal = Decimal("0")
    negative_carryover: Decimal = Decimal("0")
    commissions_created: int = 0
    vault: VaultSplit | None = None
    next_distribution_at: datetime | None = None
    integrity_warnings: list[str] = field(default_factory=list)


def compute_ngr(
    ggr: Decimal,
    bonuses: Decimal,
    retained_fraction: Decimal,
    carryover_in: Decimal,
) -> NGRComputation:
    """
    Compute settled NGR with negative carryover.

    NGR = (GGR - bonuses) x retained fraction. Carryover from earlier
    periods is subtracted; a negative result is never paid and becomes
    the carryover of the next period.

    Args:
        ggr: Stakes minus wins in the period
        bonuses: Bonuses granted in the period
        retained_fraction: Platform retained fraction (e.g. 0.96)
        carryover_in: Positive amount owed from earlier periods

    Returns:
        NGRComputation
    """
    ngr = quantize_money((ggr - bonuses) * retained_fraction)
    settled = ngr - carryover_in
    carryover_out = -settled if settled < 0 else Decimal("0")
    return NGRComputation(
        ggr=ggr,
        bonuses=bonuses,
        ngr=ngr,
        carryover_in=carryover_in,
        settled_ngr=settled,
        carryover_out=carryover_out,
    )


def split_vault(
    total_ngr: Decimal, affiliates_percentage: Decimal
) -> VaultSplit:
    """Split a vault between affiliates and rankings; rankings get the rest."""
    total_ngr = quantize_money(total_ngr)
    affiliates_share = percent_of(total_ngr, affiliates_percentage)
    return VaultSplit(
        total_ngr=total_ngr,
        affiliates_share=affiliates_share,
        rankings_share=total_ngr - affiliates_share,
    )


class RevShareSettlementService(BaseService):
    """Periodic RevShare settlement."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.affiliate_repo = AffiliateRepository(self.session)
        self.transaction_repo = TransactionRepository(self.session)
        self.period_repo = RevSharePeriodRepository(self.session)
        self.settlement_repo = RevShareSettlementRepository(self.session)
        self.vault_repo = VaultRepository(self.session)
        self.distributor = CommissionDistributor(
            self.session, self.config, self.event_bus
        )

    @transaction
    async def settle_period(
        self,
        period_type: SettlementPeriodType,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
        reference: datetime | None = None,
    ) -> SettlementResult:
        """
        Settle a RevShare period.

        Weekly and monthly bounds are derived from the reference time;
        custom periods need explicit bounds. The whole settlement commits
        as one transaction, so a crash leaves the period pending and a
        re-run starts it over. A period sharing time with an already
        settled one is skipped and reported through overlapping_period_id.

        Args:
            period_type: weekly, monthly or custom
            start_at: Custom period start (inclusive)
            end_at: Custom period end (exclusive)
            reference: Time the period ends before (default: now)

        Returns:
            SettlementResult
        """
        if period_type == SettlementPeriodType.CUSTOM:
            if start_at is None or end_at is None:
                raise ValueError("Custom periods require start_at and end_at")
            start_at, end_at = ensure_utc(start_at), ensure_utc(end_at)
            if end_at <= start_at:
                raise ValueError("Period end must be after its start")
        else:
            start_at, end_at = period_bounds(period_type, reference)

        overlapping = await self.period_repo.find_overlapping_settled(
            period_type, start_at, end_at
        )
        if overlapping is not None:
            self.logger.warning(
                "Period overlaps a settled period, skipping",
                extra={
                    "period_type": period_type.value,
                    "start_at": start_at.isoformat(),
                    "end_at": end_at.isoformat(),
                    "overlapping_period_id": overlapping.id,
                    "integrity": True,
                },
            )
            return SettlementResult(
                period_id=None,
                start_at=start_at,
                end_at=end_at,
                overlapping_period_id=overlapping.id,
                integrity_warnings=[
                    f"Overlaps settled period {overlapping.id}"
                    f" ({overlapping.period_type})"
                ],
            )

        period = await self.period_repo.get_or_create(period_type, start_at, end_at)
        result = SettlementResult(period_id=period.id, start_at=start_at, end_at=end_at)

        if period.is_settled or not await self.period_repo.mark_processing(period.id):
            self.logger.info(
                "Period already settled or claimed, skipping",
                extra={"period_id": period.id},
            )
            result.already_settled = True
            return result

        revenues = await self.transaction_repo.get_revenue_by_affiliate(start_at, end_at)
        for revenue in revenues:
            await self._settle_affiliate(period, revenue, result)

        total_ngr, total_distributed, carryover = await self.settlement_repo.get_totals(
            period.id
        )
        result.total_ngr = total_ngr
        result.total_distributed = total_distributed
        result.negative_carryover = carryover

        vault = await self._fill_vault(period, total_ngr, end_at)
        result.vault = VaultSplit(
            total_ngr=vault.total_ngr,
            affiliates_share=vault.affiliates_share,
            rankings_share=vault.rankings_share,
        )
        result.next_distribution_at = vault.next_distribution_at

        settled_at = utc_now()
        await self.period_repo.mark_settled(
            period.id, total_ngr, total_distributed, carryover, settled_at
        )
        if period_type != SettlementPeriodType.CUSTOM:
            await self.affiliate_repo.reset_period_totals()

        self.queue_event(
            EngineEvents.REVSHARE_SETTLED,
            {
                "period_id": period.id,
                "period_type": period_type.value,
                "start_at": start_at.isoformat(),
                "end_at": end_at.isoformat(),
                "total_ngr": str(total_ngr),
                "total_distributed": str(total_distributed),
                "negative_carryover": str(carryover),
            },
        )
        self.logger.info(
            "RevShare period settled",
            extra={
                "period_id": period.id,
                "affiliates_settled": result.affiliates_settled,
                "affiliates_carried": result.affiliates_carried,
                "total_ngr": str(total_ngr),
                "total_distributed": str(total_distributed),
                "negative_carryover": str(carryover),
            },
        )
        return result

    async def _settle_affiliate(
        self,
        period: RevSharePeriod,
        revenue: AffiliateRevenue,
        result: SettlementResult,
    ) -> None:
        affiliate = await self.affiliate_repo.get_by_id(
            revenue.affiliate_id, for_update=True
        )
        if affiliate is None:
            message = f"Revenue for unknown affiliate {revenue.affiliate_id}"
            result.integrity_warnings.append(message)
            self.logger.warning(
                message,
                extra={"affiliate_id": revenue.affiliate_id, "integrity": True},
            )
            return

        computation = compute_ngr(
            revenue.ggr,
            revenue.bonuses,
            self.config.revshare.retained_fraction,
            Decimal(affiliate.revshare_carryover),
        )

        settlement_id = await self.settlement_repo.insert_ignore_conflict(
            period_id=period.id,
            affiliate_id=affiliate.id,
            ggr=computation.ggr,
            bonuses=computation.bonuses,
            ngr=computation.ngr,
            carryover_applied=computation.carryover_in,
            settled_ngr=computation.settled_ngr,
            carryover_out=computation.carryover_out,
        )
        if settlement_id is None:
            return

        await self.affiliate_repo.set_carryover(affiliate.id, computation.carryover_out)

        if computation.settled_ngr <= 0:
            result.affiliates_carried += 1
            self.logger.info(
                "Negative NGR carried forward",
                extra={
                    "affiliate_id": affiliate.id,
                    "period_id": period.id,
                    "ngr": str(computation.ngr),
                    "carryover_out": str(computation.carryover_out),
                },
            )
            return

        distribution = await self.distributor.apply_revshare(
            affiliate.id, period.id, computation.settled_ngr
        )
        result.affiliates_settled += 1
        result.commissions_created += len(distribution.created)
        result.integrity_warnings.extend(distribution.integrity_warnings)

        settlement = await self.settlement_repo.get_by_id(settlement_id)
        settlement.total_distributed = distribution.total_amount
        await self.session.flush()

    async def _fill_vault(
        self, period: RevSharePeriod, total_ngr: Decimal, end_at: datetime
    ) -> Vault:
        vault_config = self.config.vault
        split = split_vault(total_ngr, vault_config.affiliates_percentage)
        next_at = next_distribution_at(
            vault_config.frequency,
            vault_config.day_of_week,
            vault_config.hour,
            vault_config.timezone,
            after=end_at,
        )
        if split.total_ngr < vault_config.minimum_amount:
            self.logger.info(
                "Vault below minimum distribution amount",
                extra={
                    "period_id": period.id,
                    "total_ngr": str(split.total_ngr),
                    "minimum_amount": str(vault_config.minimum_amount),
                },
            )

        await self.vault_repo.insert_ignore_conflict(
            period_id=period.id,
            total_ngr=split.total_ngr,
            affiliates_pct=vault_config.affiliates_percentage,
            rankings_pct=vault_config.rankings_percentage,
            affiliates_share=split.affiliates_share,
            rankings_share=split.rankings_share,
            next_distribution_at=next_at,
        )
        return await self.vault_repo.get_for_period(period.id)
