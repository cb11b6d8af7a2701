"""
Commission workflow.

Status transitions of a commission after it was calculated, and the
balance movements that follow them.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from affiliate_engine.models.commission import Commission
from affiliate_engine.models.enums import CommissionStatus
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.commission_repository import CommissionRepository
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.utils.datetime_utils import utc_now
from affiliate_engine.utils.exceptions import (
    CommissionNotFoundError,
    InvalidTransitionError,
)

ALLOWED_TRANSITIONS: dict[CommissionStatus, frozenset[CommissionStatus]] = {
    CommissionStatus.CALCULATED: frozenset(
        {CommissionStatus.APPROVED, CommissionStatus.CANCELLED, CommissionStatus.DISPUTED}
    ),
    CommissionStatus.APPROVED: frozenset(
        {CommissionStatus.PAID, CommissionStatus.CANCELLED, CommissionStatus.DISPUTED}
    ),
    CommissionStatus.PAID: frozenset({CommissionStatus.DISPUTED}),
    CommissionStatus.DISPUTED: frozenset(
        {CommissionStatus.APPROVED, CommissionStatus.CANCELLED}
    ),
    CommissionStatus.CANCELLED: frozenset(),
}

# Balance column holding an unpaid commission in each status
STATUS_BUCKETS: dict[CommissionStatus, str | None] = {
    CommissionStatus.CALCULATED: "locked_balance",
    CommissionStatus.DISPUTED: "locked_balance",
    CommissionStatus.APPROVED: "available_balance",
    CommissionStatus.PAID: None,
    CommissionStatus.CANCELLED: None,
}


@dataclass(frozen=True)
class TransitionResult:
    """Applied status change."""

    commission_id: int
    old_status: CommissionStatus
    new_status: CommissionStatus
    amount: Decimal


def can_transition(current: CommissionStatus, target: CommissionStatus) -> bool:
    """Check if the workflow allows a status change."""
    return target in ALLOWED_TRANSITIONS[current]


def balance_bucket(status: CommissionStatus, paid: bool) -> str | None:
    """
    Balance column a commission sits in.

    Once paid out, the amount has left the affiliate's balances whatever
    the later status.
    """
    if paid:
        return None
    return STATUS_BUCKETS[status]


class CommissionService(BaseService):
    """Approve, pay, cancel and dispute commissions."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.commission_repo = CommissionRepository(self.session)
        self.affiliate_repo = AffiliateRepository(self.session)

    @transaction
    async def approve(self, commission_id: int) -> TransitionResult:
        """Approve a calculated or disputed commission."""
        return await self._transition(commission_id, CommissionStatus.APPROVED)

    @transaction
    async def mark_paid(self, commission_id: int) -> TransitionResult:
        """Mark an approved commission as paid out."""
        return await self._transition(commission_id, CommissionStatus.PAID)

    @transaction
    async def cancel(self, commission_id: int) -> TransitionResult:
        """Cancel an unpaid commission and reverse its lifetime total."""
        return await self._transition(commission_id, CommissionStatus.CANCELLED)

    @transaction
    async def dispute(self, commission_id: int) -> TransitionResult:
        """Put a commission under dispute."""
        return await self._transition(commission_id, CommissionStatus.DISPUTED)

    async def _transition(
        self, commission_id: int, target: CommissionStatus
    ) -> TransitionResult:
        commission = await self.commission_repo.get_by_id(commission_id, for_update=True)
        if commission is None:
            raise CommissionNotFoundError(commission_id)

        current = CommissionStatus(commission.status)
        if not can_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)

        amount = Decimal(commission.final_amount)
        now = utc_now()
        await self._move_balance(commission, current, target, amount)

        commission.status = target.value
        if target == CommissionStatus.APPROVED:
            commission.approved_at = now
        elif target == CommissionStatus.PAID:
            commission.paid_at = now
        self._annotate(commission, current, target, now)
        await self.session.flush()

        self.logger.info(
            "Commission status changed",
            extra={
                "commission_id": commission.id,
                "affiliate_id": commission.affiliate_id,
                "old_status": current.value,
                "new_status": target.value,
                "amount": str(amount),
            },
        )
        return TransitionResult(commission.id, current, target, amount)

    async def _move_balance(
        self,
        commission: Commission,
        current: CommissionStatus,
        target: CommissionStatus,
        amount: Decimal,
    ) -> None:
        paid = commission.paid_at is not None
        from_bucket = balance_bucket(current, paid)
        to_bucket = balance_bucket(target, paid)
        lifetime_delta = -amount if target == CommissionStatus.CANCELLED else Decimal("0")

        if from_bucket == to_bucket and not lifetime_delta:
            return
        await self.affiliate_repo.move_balance(
            commission.affiliate_id,
            amount,
            from_bucket,
            to_bucket,
            lifetime_delta=lifetime_delta,
        )

    @staticmethod
    def _annotate(
        commission: Commission,
        current: CommissionStatus,
        target: CommissionStatus,
        at: datetime,
    ) -> None:
        history = list(commission.metadata_.get("status_history", []))
        history.append(
            {"from": current.value, "to": target.value, "at": at.isoformat()}
        )
        commission.metadata_ = {**commission.metadata_, "status_history": history}
