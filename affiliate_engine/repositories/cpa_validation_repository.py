"""
CPA validation repository.

Data access layer for CPAValidation model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.cpa_validation import CPAValidation
from affiliate_engine.repositories.base import BaseRepository


class CPAValidationRepository(BaseRepository[CPAValidation]):
    """CPA validation repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize CPA validation repository."""
        super().__init__(CPAValidation, session)

    async def get_for_pair(
        self, customer_id: str, affiliate_id: int
    ) -> CPAValidation | None:
        """Get the validation of a (customer, affiliate) pair."""
        return await self.get_by(customer_id=customer_id, affiliate_id=affiliate_id)
