"""
Category/level progression engine.

Keeps an affiliate's category, sub-level and RevShare percentages
consistent with its total indication count. Runs inside the caller's
database transaction after every indication change.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from affiliate_engine.models.affiliate import Affiliate
from affiliate_engine.models.enums import AffiliateCategory, CommissionType
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.progression_repository import (
    ProgressionEventRepository,
)
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.commission_writer import CommissionWriter
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.services.progression.calculator import (
    revshare_rates,
    sub_level_for,
)
from affiliate_engine.utils.exceptions import AffiliateNotFoundError


@dataclass
class ProgressionResult:
    """Outcome of a progression recompute for one affiliate."""

    affiliate_id: int
    old_category: AffiliateCategory
    new_category: AffiliateCategory
    old_level: int
    new_level: int
    bonification_paid: Decimal = Decimal("0")
    rates_changed: bool = False
    integrity_warnings: list[str] = field(default_factory=list)

    @property
    def category_changed(self) -> bool:
        return self.old_category != self.new_category

    @property
    def level_changed(self) -> bool:
        return self.old_level != self.new_level

    @property
    def changed(self) -> bool:
        return self.category_changed or self.level_changed or self.rates_changed


class ProgressionEngine(BaseService):
    """
    Category and sub-level progression.

    Categories and sub-levels only move up. Counts that fall below the
    stored category after a configuration change keep the stored category
    and are flagged for review.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.affiliate_repo = AffiliateRepository(self.session)
        self.event_repo = ProgressionEventRepository(self.session)
        self.writer = CommissionWriter(self.session, self.config, self.event_bus)

    @transaction
    async def refresh(self, affiliate_id: int) -> ProgressionResult:
        """Recompute progression of an affiliate in its own transaction."""
        return await self.recompute(affiliate_id)

    async def recompute(self, affiliate_id: int) -> ProgressionResult:
        """
        Recompute category, sub-level and RevShare rates.

        The affiliate row is re-read with a row lock inside the current
        transaction, so concurrent recomputes always see fresh counters.
        Running it twice with unchanged counters has no side effects.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            ProgressionResult describing what changed

        Raises:
            AffiliateNotFoundError: If the affiliate does not exist
            ConfigurationError: If a category table is missing
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id, for_update=True)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)

        warnings: list[str] = []
        current = self._stored_category(affiliate, warnings)
        old_level = affiliate.category_level

        target_config, in_band = self.config.category_for_count(
            affiliate.total_indications
        )
        if not in_band:
            self._warn(
                affiliate,
                warnings,
                f"Indication count {affiliate.total_indications} is above every band",
            )

        target = target_config.category
        if target.rank < current.rank:
            self._warn(
                affiliate,
                warnings,
                f"Indication count {affiliate.total_indications} falls below "
                f"category {current.value}",
            )
            target = current

        result = ProgressionResult(
            affiliate_id=affiliate.id,
            old_category=current,
            new_category=target,
            old_level=old_level,
            new_level=old_level,
            integrity_warnings=warnings,
        )

        category_config = self.config.category_config(target)
        computed_level = sub_level_for(affiliate.total_indications, category_config)

        if target != current or affiliate.category != target.value:
            new_level = computed_level
            affiliate.category = target.value
            if target != current:
                result.bonification_paid = await self._enter_category(
                    affiliate, current, target
                )
        else:
            new_level = min(max(computed_level, old_level), category_config.levels)

        affiliate.category_level = new_level
        result.new_level = new_level

        rates = revshare_rates(category_config, new_level)
        if (
            Decimal(affiliate.revshare_level1_pct) != rates.level1
            or Decimal(affiliate.revshare_levels2to5_pct) != rates.levels2to5
        ):
            affiliate.revshare_level1_pct = rates.level1
            affiliate.revshare_levels2to5_pct = rates.levels2to5
            result.rates_changed = True

        if result.changed:
            await self.session.flush()
            self.logger.info(
                "Affiliate progression updated",
                extra={
                    "affiliate_id": affiliate.id,
                    "old_category": result.old_category.value,
                    "new_category": result.new_category.value,
                    "old_level": result.old_level,
                    "new_level": result.new_level,
                    "revshare_level1_pct": str(rates.level1),
                    "revshare_levels2to5_pct": str(rates.levels2to5),
                },
            )

        return result

    async def _enter_category(
        self,
        affiliate: Affiliate,
        old: AffiliateCategory,
        new: AffiliateCategory,
    ) -> Decimal:
        """
        Record a category change and pay its bonification once.

        Returns:
            Bonification paid by this call (0 if already paid before)
        """
        bonification = self.config.category_config(new).bonification
        event_id = await self.event_repo.insert_ignore_conflict(
            affiliate_id=affiliate.id,
            from_category=old.value,
            to_category=new.value,
            total_indications=affiliate.total_indications,
            bonification_amount=bonification,
            config_version=self.config.version,
        )
        if event_id is None:
            self.logger.debug(
                "Category already entered before, no bonification",
                extra={"affiliate_id": affiliate.id, "category": new.value},
            )
            return Decimal("0")

        paid = Decimal("0")
        if bonification > 0:
            line = await self.writer.write(
                affiliate_id=affiliate.id,
                commission_type=CommissionType.BONUS,
                level=0,
                base_amount=bonification,
                commission_amount=bonification,
                metadata={
                    "reason": "category_bonification",
                    "category": new.value,
                    "progression_event_id": event_id,
                },
            )
            paid = line.final_amount if line else Decimal("0")

        self.queue_event(
            EngineEvents.CATEGORY_CHANGED,
            {
                "affiliate_id": affiliate.id,
                "old_category": old.value,
                "new_category": new.value,
                "bonification": str(paid),
                "total_indications": affiliate.total_indications,
            },
        )
        return paid

    def _stored_category(
        self, affiliate: Affiliate, warnings: list[str]
    ) -> AffiliateCategory:
        try:
            return AffiliateCategory(affiliate.category)
        except ValueError:
            self._warn(
                affiliate,
                warnings,
                f"Unknown stored category {affiliate.category!r}, using default",
            )
            return AffiliateCategory.default()

    def _warn(self, affiliate: Affiliate, warnings: list[str], message: str) -> None:
        warnings.append(message)
        self.logger.warning(
            message,
            extra={"affiliate_id": affiliate.id, "integrity": True},
        )
