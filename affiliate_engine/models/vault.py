"""
Vault model.

Period-scoped pool of settled NGR, split between affiliates and rankings.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import MoneyType, PercentType, UTCDateTime


class Vault(Base):
    """NGR pool of one settlement period."""

    __tablename__ = "vaults"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("revshare_periods.id"), unique=True, nullable=False
    )
    total_ngr: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    affiliates_pct: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    rankings_pct: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    affiliates_share: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    rankings_share: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    next_distribution_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Vault(period_id={self.period_id}, total_ngr={self.total_ngr}, "
            f"next_distribution_at={self.next_distribution_at.isoformat()})>"
        )
