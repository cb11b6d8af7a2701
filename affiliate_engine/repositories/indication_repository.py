"""
Indication repository.

Data access layer for Indication model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.indication import Indication
from affiliate_engine.repositories.base import BaseRepository


class IndicationRepository(BaseRepository[Indication]):
    """Indication repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize indication repository."""
        super().__init__(Indication, session)

    async def count_since(self, affiliate_id: int, since: datetime) -> int:
        """
        Count indications credited to an affiliate since a point in time.

        Args:
            affiliate_id: Affiliate ID
            since: Inclusive lower bound

        Returns:
            Number of indications
        """
        stmt = select(func.count(Indication.id)).where(
            Indication.affiliate_id == affiliate_id,
            Indication.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
