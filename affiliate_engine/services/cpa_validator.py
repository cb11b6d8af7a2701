"""
CPA validator.

Decides when a referred customer qualifies its affiliate for a CPA payout.
Each (customer, affiliate) pair moves from unvalidated to validated once,
under exactly one model; the transition is a unique row in
cpa_validations, so concurrent workers cannot validate a pair twice.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from affiliate_engine.models.enums import CPAModel, TransactionType
from affiliate_engine.models.transaction import Transaction
from affiliate_engine.repositories.cpa_validation_repository import (
    CPAValidationRepository,
)
from affiliate_engine.repositories.transaction_repository import TransactionRepository
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.events import EngineEvents
from affiliate_engine.utils.datetime_utils import ensure_utc

# Transaction types that can move a pair towards validation
EVALUATED_TYPES = frozenset({TransactionType.DEPOSIT, TransactionType.BET})


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a CPA evaluation.

    passed is True once the pair is validated, by this call or an earlier
    one. commission_eligible is True only for the call that validated it.
    """

    customer_id: str
    affiliate_id: int | None
    model: CPAModel | None
    passed: bool
    commission_eligible: bool
    already_validated: bool = False
    reason: str | None = None

    @classmethod
    def not_met(
        cls, customer_id: str, affiliate_id: int | None, reason: str
    ) -> "ValidationResult":
        """Validation not yet met; may pass on a later transaction."""
        return cls(
            customer_id=customer_id,
            affiliate_id=affiliate_id,
            model=None,
            passed=False,
            commission_eligible=False,
            reason=reason,
        )


class CPAValidator(BaseService):
    """CPA validation state machine per (customer, affiliate) pair."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.validation_repo = CPAValidationRepository(self.session)
        self.transaction_repo = TransactionRepository(self.session)

    @transaction
    async def validate(self, transaction_id: int) -> ValidationResult:
        """Evaluate a stored transaction in its own database transaction."""
        tx = await self.transaction_repo.get_by_id(transaction_id)
        if tx is None:
            raise ValueError(f"Transaction {transaction_id} not found")
        return await self.evaluate(tx)

    async def evaluate(self, tx: Transaction) -> ValidationResult:
        """
        Evaluate the pair of a processed transaction.

        Model 1.1 is tried first, then model 1.2. Not meeting a model is a
        normal outcome and is re-evaluated on the customer's next deposit
        or bet.

        Args:
            tx: Processed deposit or bet

        Returns:
            ValidationResult
        """
        customer_id = tx.customer_id
        affiliate_id = tx.affiliate_id

        if affiliate_id is None:
            return ValidationResult.not_met(customer_id, None, "no_affiliate")
        if tx.type not in EVALUATED_TYPES:
            return ValidationResult.not_met(customer_id, affiliate_id, "not_evaluated_type")

        existing = await self.validation_repo.get_for_pair(customer_id, affiliate_id)
        if existing is not None:
            return ValidationResult(
                customer_id=customer_id,
                affiliate_id=affiliate_id,
                model=CPAModel(existing.model),
                passed=True,
                commission_eligible=False,
                already_validated=True,
            )

        first_deposit = await self.transaction_repo.get_first_deposit(customer_id)
        if first_deposit is None:
            return ValidationResult.not_met(customer_id, affiliate_id, "no_deposit")

        model = None
        if self._first_deposit_met(first_deposit):
            model = CPAModel.FIRST_DEPOSIT
        elif await self._activity_met(first_deposit, ensure_utc(tx.occurred_at)):
            model = CPAModel.ACTIVITY

        if model is None:
            return ValidationResult.not_met(customer_id, affiliate_id, "thresholds_not_met")

        validation_id = await self.validation_repo.insert_ignore_conflict(
            customer_id=customer_id,
            affiliate_id=affiliate_id,
            model=model.value,
            transaction_id=tx.id,
        )
        if validation_id is None:
            # Another worker validated the pair first
            return ValidationResult(
                customer_id=customer_id,
                affiliate_id=affiliate_id,
                model=model,
                passed=True,
                commission_eligible=False,
                already_validated=True,
            )

        self.queue_event(
            EngineEvents.CPA_VALIDATION_COMPLETED,
            {
                "customer_id": customer_id,
                "affiliate_id": affiliate_id,
                "model": model.value,
                "transaction_id": tx.id,
            },
        )
        self.logger.info(
            "CPA validation completed",
            extra={
                "customer_id": customer_id,
                "affiliate_id": affiliate_id,
                "model": model.value,
                "transaction_id": tx.id,
            },
        )
        return ValidationResult(
            customer_id=customer_id,
            affiliate_id=affiliate_id,
            model=model,
            passed=True,
            commission_eligible=True,
        )

    def _first_deposit_met(self, first_deposit: Transaction) -> bool:
        """Model 1.1: first deposit reaches the minimum."""
        model = self.config.cpa.first_deposit
        return model.enabled and Decimal(first_deposit.amount) >= model.minimum_deposit

    async def _activity_met(self, first_deposit: Transaction, at: datetime) -> bool:
        """
        Model 1.2: minimum first deposit plus bets OR GGR in the window.

        The window trails the evaluation time and never starts before the
        first deposit, so activity that has aged out no longer counts.
        """
        model = self.config.cpa.activity
        if not model.enabled:
            return False
        if Decimal(first_deposit.amount) < model.minimum_deposit:
            return False

        start = max(
            ensure_utc(first_deposit.occurred_at),
            at - timedelta(days=model.window_days),
        )
        if start > at:
            return False

        activity = await self.transaction_repo.get_activity(
            first_deposit.customer_id, start, at
        )
        return (
            activity.bet_count >= model.minimum_bets
            or activity.ggr >= model.minimum_ggr
        )
