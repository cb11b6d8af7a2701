"""
Settlement repositories.

Data access layer for RevSharePeriod, RevShareSettlement and Vault models.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import and_, func, not_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import SettlementPeriodType, SettlementStatus
from affiliate_engine.models.settlement import RevSharePeriod, RevShareSettlement
from affiliate_engine.models.vault import Vault
from affiliate_engine.repositories.base import BaseRepository


class RevSharePeriodRepository(BaseRepository[RevSharePeriod]):
    """Settlement period repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize settlement period repository."""
        super().__init__(RevSharePeriod, session)

    async def get_or_create(
        self,
        period_type: SettlementPeriodType,
        start_at: datetime,
        end_at: datetime,
    ) -> RevSharePeriod:
        """
        Get the period with these bounds, creating it if needed.

        Args:
            period_type: weekly, monthly or custom
            start_at: Period start (inclusive)
            end_at: Period end (exclusive)

        Returns:
            Period entity
        """
        await self.insert_ignore_conflict(
            period_type=period_type.value, start_at=start_at, end_at=end_at
        )
        stmt = (
            select(RevSharePeriod)
            .where(
                RevSharePeriod.period_type == period_type.value,
                RevSharePeriod.start_at == start_at,
                RevSharePeriod.end_at == end_at,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def find_overlapping_settled(
        self,
        period_type: SettlementPeriodType,
        start_at: datetime,
        end_at: datetime,
    ) -> RevSharePeriod | None:
        """
        Find a settled period sharing any time with [start_at, end_at).

        The period with exactly these bounds and type is not an overlap;
        re-settling it is handled as a duplicate.
        """
        stmt = (
            select(RevSharePeriod)
            .where(
                RevSharePeriod.status == SettlementStatus.SETTLED.value,
                RevSharePeriod.start_at < end_at,
                RevSharePeriod.end_at > start_at,
                not_(
                    and_(
                        RevSharePeriod.period_type == period_type.value,
                        RevSharePeriod.start_at == start_at,
                        RevSharePeriod.end_at == end_at,
                    )
                ),
            )
            .order_by(RevSharePeriod.start_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_processing(self, period_id: int) -> bool:
        """
        Move a pending period to processing.

        Processing is never committed: a settlement ends settled, or rolls
        back to pending. Only one caller can win the move.

        Returns:
            True if this caller now owns the period
        """
        stmt = (
            update(RevSharePeriod)
            .where(
                RevSharePeriod.id == period_id,
                RevSharePeriod.status == SettlementStatus.PENDING.value,
            )
            .values(status=SettlementStatus.PROCESSING.value)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_settled(
        self,
        period_id: int,
        total_ngr: Decimal,
        total_distributed: Decimal,
        negative_carryover: Decimal,
        at: datetime,
    ) -> bool:
        """
        Close a period with its totals.

        Returns:
            True if this call settled the period
        """
        stmt = (
            update(RevSharePeriod)
            .where(
                RevSharePeriod.id == period_id,
                RevSharePeriod.status != SettlementStatus.SETTLED.value,
            )
            .values(
                status=SettlementStatus.SETTLED.value,
                total_ngr=total_ngr,
                total_distributed=total_distributed,
                negative_carryover=negative_carryover,
                settled_at=at,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class RevShareSettlementRepository(BaseRepository[RevShareSettlement]):
    """Per-affiliate settlement repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize settlement repository."""
        super().__init__(RevShareSettlement, session)

    async def get_for_affiliate(
        self, period_id: int, affiliate_id: int
    ) -> RevShareSettlement | None:
        """Get the settlement of an affiliate in a period."""
        return await self.get_by(period_id=period_id, affiliate_id=affiliate_id)

    async def get_totals(self, period_id: int) -> tuple[Decimal, Decimal, Decimal]:
        """
        Aggregate settlements of a period.

        Returns:
            Tuple of (positive settled NGR, distributed, negative carryover)
        """
        stmt = select(
            func.coalesce(
                func.sum(RevShareSettlement.settled_ngr).filter(
                    RevShareSettlement.settled_ngr > 0
                ),
                0,
            ),
            func.coalesce(func.sum(RevShareSettlement.total_distributed), 0),
            func.coalesce(func.sum(RevShareSettlement.carryover_out), 0),
        ).where(RevShareSettlement.period_id == period_id)
        result = await self.session.execute(stmt)
        settled, distributed, carryover = result.one()
        return Decimal(str(settled)), Decimal(str(distributed)), Decimal(str(carryover))


class VaultRepository(BaseRepository[Vault]):
    """Vault repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize vault repository."""
        super().__init__(Vault, session)

    async def get_for_period(self, period_id: int) -> Vault | None:
        """Get the vault of a settlement period."""
        return await self.get_by(period_id=period_id)
