"""
Commission writer.

Single place where Commission rows are inserted. Every insert goes through
the storage-level uniqueness guard; a conflicting row means the payout was
already made and nothing is credited twice.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from affiliate_engine.models.enums import CommissionStatus, CommissionType
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.commission_repository import CommissionRepository
from affiliate_engine.services.base_service import BaseService
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.utils.money import quantize_money


@dataclass(frozen=True)
class CommissionLine:
    """Commission row created by a distribution."""

    commission_id: int
    affiliate_id: int
    type: CommissionType
    level: int
    base_amount: Decimal
    percentage: Decimal | None
    commission_amount: Decimal
    final_amount: Decimal


class CommissionWriter(BaseService):
    """Insert commissions at most once and credit the recipient."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.commission_repo = CommissionRepository(self.session)
        self.affiliate_repo = AffiliateRepository(self.session)

    async def write(
        self,
        *,
        affiliate_id: int,
        commission_type: CommissionType,
        level: int,
        base_amount: Decimal,
        commission_amount: Decimal,
        final_amount: Decimal | None = None,
        percentage: Decimal | None = None,
        source_affiliate_id: int | None = None,
        customer_id: str | None = None,
        transaction_id: int | None = None,
        settlement_period_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CommissionLine | None:
        """
        Create a commission unless an equivalent live row exists.

        New commissions start as calculated and their final amount is
        credited to the recipient's locked balance.

        Returns:
            The created line, or None if the tuple was already paid
        """
        commission_amount = quantize_money(commission_amount)
        final_amount = quantize_money(
            commission_amount if final_amount is None else final_amount
        )

        commission_id = await self.commission_repo.insert_ignore_conflict(
            affiliate_id=affiliate_id,
            source_affiliate_id=source_affiliate_id,
            customer_id=customer_id,
            transaction_id=transaction_id,
            settlement_period_id=settlement_period_id,
            type=commission_type.value,
            level=level,
            base_amount=base_amount,
            percentage=percentage,
            commission_amount=commission_amount,
            final_amount=final_amount,
            status=CommissionStatus.CALCULATED.value,
            metadata_=metadata or {},
        )
        if commission_id is None:
            self.logger.debug(
                "Commission already exists, skipping",
                extra={
                    "affiliate_id": affiliate_id,
                    "type": commission_type.value,
                    "level": level,
                    "transaction_id": transaction_id,
                    "settlement_period_id": settlement_period_id,
                },
            )
            return None

        if final_amount > 0:
            await self.affiliate_repo.credit_commission(affiliate_id, final_amount)

        line = CommissionLine(
            commission_id=commission_id,
            affiliate_id=affiliate_id,
            type=commission_type,
            level=level,
            base_amount=base_amount,
            percentage=percentage,
            commission_amount=commission_amount,
            final_amount=final_amount,
        )
        self.queue_event(
            EngineEvents.COMMISSION_CREATED,
            {
                "commission_id": commission_id,
                "affiliate_id": affiliate_id,
                "source_affiliate_id": source_affiliate_id,
                "type": commission_type.value,
                "level": level,
                "amount": str(final_amount),
                "transaction_id": transaction_id,
                "settlement_period_id": settlement_period_id,
            },
        )
        self.logger.info(
            "Commission created",
            extra={
                "commission_id": commission_id,
                "affiliate_id": affiliate_id,
                "type": commission_type.value,
                "level": level,
                "final_amount": str(final_amount),
            },
        )
        return line
