"""
Category progression event model.

Records each category an affiliate entered. The (affiliate, category) key
makes the entry bonification payable once.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import MoneyType, UTCDateTime


class CategoryProgressionEvent(Base):
    """Category change of an affiliate."""

    __tablename__ = "category_progression_events"
    __table_args__ = (
        UniqueConstraint(
            "affiliate_id", "to_category",
            name="uq_progression_affiliate_category",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id"), nullable=False, index=True
    )
    from_category: Mapped[str] = mapped_column(String(20), nullable=False)
    to_category: Mapped[str] = mapped_column(String(20), nullable=False)
    total_indications: Mapped[int] = mapped_column(Integer, nullable=False)
    bonification_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    config_version: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CategoryProgressionEvent(affiliate_id={self.affiliate_id}, "
            f"{self.from_category} -> {self.to_category})>"
        )
