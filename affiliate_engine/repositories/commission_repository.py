"""
Commission repository.

Data access layer for Commission model.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.commission import Commission
from affiliate_engine.models.enums import CommissionStatus
from affiliate_engine.repositories.base import BaseRepository


class CommissionRepository(BaseRepository[Commission]):
    """Commission repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission repository."""
        super().__init__(Commission, session)

    async def find_by_transaction(self, transaction_id: int) -> list[Commission]:
        """Get commissions generated by a transaction."""
        return await self.find_by(transaction_id=transaction_id)

    async def find_by_period(self, period_id: int) -> list[Commission]:
        """Get RevShare commissions of a settlement period."""
        return await self.find_by(settlement_period_id=period_id)

    async def find_by_affiliate(
        self, affiliate_id: int, status: CommissionStatus | None = None
    ) -> list[Commission]:
        """
        Get commissions received by an affiliate.

        Args:
            affiliate_id: Recipient ID
            status: Optional status filter

        Returns:
            List of commissions
        """
        filters = {"affiliate_id": affiliate_id}
        if status:
            filters["status"] = status.value
        return await self.find_by(**filters)

    async def sum_for_period(self, period_id: int) -> Decimal:
        """Total non-cancelled RevShare paid for a period."""
        stmt = select(func.coalesce(func.sum(Commission.final_amount), 0)).where(
            Commission.settlement_period_id == period_id,
            Commission.status != CommissionStatus.CANCELLED.value,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar()))
