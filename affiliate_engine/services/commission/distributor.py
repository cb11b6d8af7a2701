"""
Commission distributor.

Turns a validated CPA event or a settled RevShare amount into commission
rows across the sponsor chain. Every row and counter change is guarded by
a storage-level unique key, so a distribution can be replayed safely by
at-least-once event sources.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from affiliate_engine.config.engine_config import CPAConfig
from affiliate_engine.config.settings import settings
from affiliate_engine.models.enums import CommissionType
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.indication_repository import IndicationRepository
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.commission_writer import CommissionLine, CommissionWriter
from affiliate_engine.services.hierarchy_resolver import ChainNode, HierarchyResolver
from affiliate_engine.services.inactivity_tracker import InactivityTracker
from affiliate_engine.services.progression.calculator import revshare_rates
from affiliate_engine.services.progression.engine import (
    ProgressionEngine,
    ProgressionResult,
)
from affiliate_engine.utils.datetime_utils import utc_now
from affiliate_engine.utils.exceptions import AffiliateNotFoundError, ConfigurationError
from affiliate_engine.utils.money import percent_of, quantize_money


@dataclass(frozen=True)
class SkippedPayout:
    """Chain node that received nothing, kept for audit."""

    affiliate_id: int
    level: int
    reason: str


@dataclass
class DistributionResult:
    """Outcome of one distribution call."""

    created: list[CommissionLine] = field(default_factory=list)
    duplicates: int = 0
    skipped: list[SkippedPayout] = field(default_factory=list)
    counters_applied: bool = False
    progression: list[ProgressionResult] = field(default_factory=list)
    integrity_warnings: list[str] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        """Sum of final amounts created by this call."""
        return sum((line.final_amount for line in self.created), Decimal("0"))

    @property
    def is_noop(self) -> bool:
        """True when the call found everything already applied."""
        return not self.created and not self.counters_applied


class CommissionDistributor(BaseService):
    """
    CPA and RevShare distribution.

    Example:
        distributor = CommissionDistributor(session, config)
        result = await distributor.distribute_cpa("cust-1", 42, 1001)
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.affiliate_repo = AffiliateRepository(self.session)
        self.indication_repo = IndicationRepository(self.session)
        self.resolver = HierarchyResolver(self.session)
        self.writer = CommissionWriter(self.session, self.config, self.event_bus)
        self.progression = ProgressionEngine(self.session, self.config, self.event_bus)
        self.inactivity = InactivityTracker(self.session, self.config, self.event_bus)

    @transaction
    async def distribute_cpa(
        self, customer_id: str, triggering_affiliate_id: int, transaction_id: int
    ) -> DistributionResult:
        """Distribute CPA for a validated customer in its own transaction."""
        return await self.apply_cpa(customer_id, triggering_affiliate_id, transaction_id)

    @transaction
    async def distribute_revshare(
        self, affiliate_id: int, period_id: int, ngr_amount: Decimal
    ) -> DistributionResult:
        """Distribute settled RevShare NGR in its own transaction."""
        return await self.apply_revshare(affiliate_id, period_id, ngr_amount)

    async def apply_cpa(
        self, customer_id: str, triggering_affiliate_id: int, transaction_id: int
    ) -> DistributionResult:
        """
        Pay CPA levels, the direct bonus and credit the indication.

        Level n of the chain receives the configured level-n amount; the
        direct sponsor also receives the direct bonus as a level-0 row.
        The triggering affiliate's indication counters, and the total
        counters of its chain, move once per transaction.

        Args:
            customer_id: Validated customer
            triggering_affiliate_id: Affiliate that referred the customer
            transaction_id: Transaction that completed the validation

        Returns:
            DistributionResult

        Raises:
            ConfigurationError: If the CPA table is missing
            AffiliateNotFoundError: If the triggering affiliate does not exist
        """
        cpa = self._cpa_table()
        triggering = await self.affiliate_repo.get_link(triggering_affiliate_id)
        if triggering is None:
            raise AffiliateNotFoundError(triggering_affiliate_id)

        chain = await self.resolver.resolve_chain(
            triggering_affiliate_id, settings.hierarchy_max_depth
        )
        result = DistributionResult(integrity_warnings=list(chain.integrity_warnings))
        common = {
            "source_affiliate_id": triggering_affiliate_id,
            "customer_id": customer_id,
            "transaction_id": transaction_id,
        }

        for node in chain:
            if not self._payable(node, result):
                continue

            amount = cpa.amount_for(node.level)
            if amount > 0:
                line = await self.writer.write(
                    affiliate_id=node.affiliate_id,
                    commission_type=CommissionType.CPA,
                    level=node.level,
                    base_amount=amount,
                    commission_amount=amount,
                    metadata={"config_version": self.config.version},
                    **common,
                )
                self._collect(result, line)

            if node.level == 1 and cpa.direct_bonus > 0:
                line = await self.writer.write(
                    affiliate_id=node.affiliate_id,
                    commission_type=CommissionType.BONUS,
                    level=0,
                    base_amount=cpa.direct_bonus,
                    commission_amount=cpa.direct_bonus,
                    metadata={
                        "reason": "direct_referral_bonus",
                        "config_version": self.config.version,
                    },
                    **common,
                )
                self._collect(result, line)

        indication_id = await self.indication_repo.insert_ignore_conflict(
            affiliate_id=triggering_affiliate_id,
            customer_id=customer_id,
            transaction_id=transaction_id,
        )
        if indication_id is not None:
            result.counters_applied = True
            await self.affiliate_repo.increment_indications(
                triggering_affiliate_id, direct=True
            )
            for node in chain:
                await self.affiliate_repo.increment_indications(
                    node.affiliate_id, direct=False
                )

            now = utc_now()
            await self.inactivity.check_reactivation(triggering_affiliate_id, now)
            await self.affiliate_repo.touch_activity(triggering_affiliate_id, now)

            for affiliate_id in [triggering_affiliate_id, *chain.ids]:
                result.progression.append(
                    await self.progression.recompute(affiliate_id)
                )

        self.logger.info(
            "CPA distributed",
            extra={
                "customer_id": customer_id,
                "triggering_affiliate_id": triggering_affiliate_id,
                "transaction_id": transaction_id,
                "chain_length": len(chain),
                "created": len(result.created),
                "duplicates": result.duplicates,
                "skipped": len(result.skipped),
                "total_amount": str(result.total_amount),
                "counters_applied": result.counters_applied,
            },
        )
        return result

    async def apply_revshare(
        self, affiliate_id: int, period_id: int, ngr_amount: Decimal
    ) -> DistributionResult:
        """
        Pay RevShare on an affiliate's settled NGR up its sponsor chain.

        The direct sponsor is paid at its level-1 rate, higher levels at
        their levels-2-to-5 rate. Rates come from each recipient's
        category and sub-level under the current snapshot; the recipient's
        inactivity reduction lowers the final amount only.

        Args:
            affiliate_id: Affiliate whose NGR is distributed
            period_id: Settlement period ID
            ngr_amount: Settled NGR after carryover

        Returns:
            DistributionResult (empty for non-positive NGR)
        """
        result = DistributionResult()
        ngr_amount = quantize_money(ngr_amount)
        if ngr_amount <= 0:
            return result

        chain = await self.resolver.resolve_chain(
            affiliate_id, self.config.revshare.max_levels
        )
        result.integrity_warnings.extend(chain.integrity_warnings)

        for node in chain:
            if not self._payable(node, result):
                continue

            recipient = await self.affiliate_repo.get_by_id(node.affiliate_id)
            category = node.category_enum
            if recipient is None or category is None:
                self._skip(result, node, "unknown_category")
                continue

            category_config = self.config.category_config(category)
            percentage = revshare_rates(
                category_config, recipient.category_level
            ).for_level(node.level)
            commission_amount = percent_of(ngr_amount, percentage)
            if commission_amount <= 0:
                continue

            reduction = Decimal(recipient.inactivity_reduction_pct)
            final_amount = quantize_money(commission_amount * recipient.reduction_factor)

            line = await self.writer.write(
                affiliate_id=node.affiliate_id,
                commission_type=CommissionType.REVSHARE,
                level=node.level,
                base_amount=ngr_amount,
                percentage=percentage,
                commission_amount=commission_amount,
                final_amount=final_amount,
                source_affiliate_id=affiliate_id,
                settlement_period_id=period_id,
                metadata={
                    "category": category.value,
                    "category_level": recipient.category_level,
                    "inactivity_reduction_pct": str(reduction),
                    "config_version": self.config.version,
                },
            )
            self._collect(result, line)

        self.logger.info(
            "RevShare distributed",
            extra={
                "affiliate_id": affiliate_id,
                "period_id": period_id,
                "ngr_amount": str(ngr_amount),
                "created": len(result.created),
                "duplicates": result.duplicates,
                "total_amount": str(result.total_amount),
            },
        )
        return result

    def _cpa_table(self) -> CPAConfig:
        cpa = getattr(self.config, "cpa", None)
        if cpa is None or not cpa.level_amounts:
            raise ConfigurationError("CPA level table is not configured")
        return cpa

    def _payable(self, node: ChainNode, result: DistributionResult) -> bool:
        if node.is_active:
            return True
        self._skip(result, node, f"status_{node.status}")
        return False

    def _skip(self, result: DistributionResult, node: ChainNode, reason: str) -> None:
        result.skipped.append(SkippedPayout(node.affiliate_id, node.level, reason))
        self.logger.info(
            "Chain node skipped",
            extra={
                "affiliate_id": node.affiliate_id,
                "level": node.level,
                "reason": reason,
            },
        )

    @staticmethod
    def _collect(result: DistributionResult, line: CommissionLine | None) -> None:
        if line is None:
            result.duplicates += 1
        else:
            result.created.append(line)
