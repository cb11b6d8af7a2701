"""
Category progression repository.

Data access layer for CategoryProgressionEvent model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.progression_event import CategoryProgressionEvent
from affiliate_engine.repositories.base import BaseRepository


class ProgressionEventRepository(BaseRepository[CategoryProgressionEvent]):
    """Progression event repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize progression event repository."""
        super().__init__(CategoryProgressionEvent, session)

    async def find_by_affiliate(
        self, affiliate_id: int
    ) -> list[CategoryProgressionEvent]:
        """Get category history of an affiliate, oldest first."""
        return await self.find_by(affiliate_id=affiliate_id)
