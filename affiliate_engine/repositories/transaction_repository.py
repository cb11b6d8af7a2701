"""
Transaction repository.

Data access layer for Transaction model.
"""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import TransactionStatus, TransactionType
from affiliate_engine.models.transaction import Transaction
from affiliate_engine.repositories.base import BaseRepository


class ActivityMetrics(NamedTuple):
    """Bet activity of a customer inside a window."""

    bet_count: int
    ggr: Decimal


class AffiliateRevenue(NamedTuple):
    """Revenue generated by an affiliate's customers inside a period."""

    affiliate_id: int
    ggr: Decimal
    bonuses: Decimal


class TransactionRepository(BaseRepository[Transaction]):
    """Transaction repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transaction repository."""
        super().__init__(Transaction, session)

    async def get_by_external_id(self, external_id: str) -> Transaction | None:
        """Get transaction by platform transaction ID."""
        return await self.get_by(external_id=external_id)

    async def claim(self, transaction_id: int, at: datetime) -> bool:
        """
        Claim a transaction for processing.

        Only one caller can ever win the claim for a transaction.

        Args:
            transaction_id: Transaction ID
            at: Processing timestamp

        Returns:
            True if this caller owns the transaction
        """
        stmt = (
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.processed_at.is_(None),
            )
            .values(processed_at=at, status=TransactionStatus.PROCESSED.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_first_deposit(self, customer_id: str) -> Transaction | None:
        """
        Get the first processed deposit of a customer.

        Args:
            customer_id: Platform customer ID

        Returns:
            Earliest processed deposit or None
        """
        stmt = (
            select(Transaction)
            .where(
                Transaction.customer_id == customer_id,
                Transaction.type == TransactionType.DEPOSIT.value,
                Transaction.status == TransactionStatus.PROCESSED.value,
            )
            .order_by(Transaction.occurred_at, Transaction.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_activity(
        self, customer_id: str, start: datetime, end: datetime
    ) -> ActivityMetrics:
        """
        Aggregate processed bets of a customer in [start, end].

        Args:
            customer_id: Platform customer ID
            start: Window start (inclusive)
            end: Window end (inclusive)

        Returns:
            Bet count and GGR (stakes minus wins)
        """
        stmt = select(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.amount - Transaction.win_amount), 0),
        ).where(
            Transaction.customer_id == customer_id,
            Transaction.type == TransactionType.BET.value,
            Transaction.status == TransactionStatus.PROCESSED.value,
            Transaction.occurred_at >= start,
            Transaction.occurred_at <= end,
        )
        result = await self.session.execute(stmt)
        bet_count, ggr = result.one()
        return ActivityMetrics(int(bet_count), Decimal(str(ggr)))

    async def get_revenue_by_affiliate(
        self, start: datetime, end: datetime
    ) -> list[AffiliateRevenue]:
        """
        Aggregate GGR and bonuses per originating affiliate in [start, end).

        Args:
            start: Period start (inclusive)
            end: Period end (exclusive)

        Returns:
            Revenue per affiliate with any bet or bonus activity, ordered by ID
        """
        is_bet = Transaction.type == TransactionType.BET.value
        is_bonus = Transaction.type == TransactionType.BONUS.value
        ggr = func.coalesce(
            func.sum(
                case((is_bet, Transaction.amount - Transaction.win_amount), else_=0)
            ),
            0,
        )
        bonuses = func.coalesce(
            func.sum(case((is_bonus, Transaction.amount), else_=0)), 0
        )
        stmt = (
            select(Transaction.affiliate_id, ggr, bonuses)
            .where(
                Transaction.affiliate_id.is_not(None),
                Transaction.status == TransactionStatus.PROCESSED.value,
                Transaction.type.in_(
                    [TransactionType.BET.value, TransactionType.BONUS.value]
                ),
                Transaction.occurred_at >= start,
                Transaction.occurred_at < end,
            )
            .group_by(Transaction.affiliate_id)
            .order_by(Transaction.affiliate_id)
        )
        result = await self.session.execute(stmt)
        return [
            AffiliateRevenue(affiliate_id, Decimal(str(g)), Decimal(str(b)))
            for affiliate_id, g, b in result.all()
        ]
