"""
Transaction ingestion.

Entry point for the platform's transaction feed. Delivery is
at-least-once: a transaction is stored once per external ID and claimed
for processing once, so replays never reach the validator twice.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from affiliate_engine.models.enums import TransactionStatus, TransactionType
from affiliate_engine.models.transaction import Transaction
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.transaction_repository import TransactionRepository
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.commission.distributor import (
    CommissionDistributor,
    DistributionResult,
)
from affiliate_engine.services.cpa_validator import CPAValidator, ValidationResult
from affiliate_engine.utils.datetime_utils import ensure_utc, utc_now

# Types that add to the referring affiliate's volume
VOLUME_TYPES = frozenset(
    {TransactionType.DEPOSIT, TransactionType.BET, TransactionType.SALE}
)


class TransactionPayload(BaseModel):
    """Processed transaction as delivered by the platform feed."""

    model_config = ConfigDict(frozen=True)

    external_id: str = Field(min_length=1, max_length=128)
    customer_id: str = Field(min_length=1, max_length=64)
    affiliate_id: int | None = None
    type: TransactionType
    amount: Decimal = Field(ge=0)
    win_amount: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    status: TransactionStatus = TransactionStatus.PROCESSED
    occurred_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("occurred_at")
    @classmethod
    def validate_occurred_at(cls, v: datetime) -> datetime:
        """Store timestamps as aware UTC."""
        return ensure_utc(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Normalize currency code."""
        return v.upper()


@dataclass
class IngestResult:
    """Outcome of ingesting one transaction."""

    transaction_id: int
    duplicate: bool = False
    processed: bool = False
    validation: ValidationResult | None = None
    distribution: DistributionResult | None = None


class TransactionIngestionService(BaseService):
    """Store, claim and process feed transactions."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.transaction_repo = TransactionRepository(self.session)
        self.affiliate_repo = AffiliateRepository(self.session)
        self.validator = CPAValidator(self.session, self.config, self.event_bus)
        self.distributor = CommissionDistributor(
            self.session, self.config, self.event_bus
        )

    @transaction
    async def ingest(self, payload: TransactionPayload) -> IngestResult:
        """
        Ingest a transaction from the feed.

        Deposits and bets are evaluated by the CPA validator; the first
        validation of a pair distributes CPA in the same database
        transaction.

        Args:
            payload: Feed transaction

        Returns:
            IngestResult (duplicate=True for an already processed one)
        """
        affiliate_id = payload.affiliate_id
        if affiliate_id is not None and await self.affiliate_repo.get_link(affiliate_id) is None:
            self.logger.warning(
                "Transaction references unknown affiliate",
                extra={
                    "external_id": payload.external_id,
                    "affiliate_id": affiliate_id,
                    "integrity": True,
                },
            )
            affiliate_id = None

        tx = await self._store(payload, affiliate_id)
        result = IngestResult(transaction_id=tx.id)

        if payload.status != TransactionStatus.PROCESSED:
            self.logger.info(
                "Transaction stored without processing",
                extra={"transaction_id": tx.id, "status": payload.status.value},
            )
            return result

        now = utc_now()
        if not await self.transaction_repo.claim(tx.id, now):
            self.logger.debug(
                "Transaction already processed, skipping",
                extra={"transaction_id": tx.id, "external_id": tx.external_id},
            )
            result.duplicate = True
            return result

        await self.session.refresh(tx)
        result.processed = True

        if tx.affiliate_id is not None:
            if tx.type in VOLUME_TYPES:
                await self.affiliate_repo.add_volume(tx.affiliate_id, Decimal(tx.amount))
            await self.affiliate_repo.touch_activity(
                tx.affiliate_id, min(ensure_utc(tx.occurred_at), now)
            )

        validation = await self.validator.evaluate(tx)
        result.validation = validation
        if validation.commission_eligible:
            result.distribution = await self.distributor.apply_cpa(
                tx.customer_id, tx.affiliate_id, tx.id
            )

        self.logger.info(
            "Transaction processed",
            extra={
                "transaction_id": tx.id,
                "type": tx.type,
                "customer_id": tx.customer_id,
                "affiliate_id": tx.affiliate_id,
                "cpa_passed": validation.passed,
                "cpa_distributed": result.distribution is not None,
            },
        )
        return result

    async def _store(self, payload: TransactionPayload, affiliate_id: int | None) -> Transaction:
        """Insert the transaction unless its external ID is known."""
        await self.transaction_repo.insert_ignore_conflict(
            external_id=payload.external_id,
            customer_id=payload.customer_id,
            affiliate_id=affiliate_id,
            type=payload.type.value,
            amount=payload.amount,
            win_amount=payload.win_amount,
            currency=payload.currency,
            status=TransactionStatus.PENDING.value,
            metadata_=payload.metadata,
            occurred_at=payload.occurred_at,
        )
        tx = await self.transaction_repo.get_by_external_id(payload.external_id)
        if payload.status != TransactionStatus.PROCESSED and tx.processed_at is None:
            tx.status = payload.status.value
            await self.session.flush()
        return tx
