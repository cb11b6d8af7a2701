"""
Indication model.

One validated referral credited to an affiliate. The unique transaction id
guards the indication counters against double increments.
"""

from datetime import UTC, datetime

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import UTCDateTime


class Indication(Base):
    """Validated referral credited to an affiliate."""

    __tablename__ = "indications"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id"), nullable=False
    )
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), unique=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Indication(affiliate_id={self.affiliate_id}, "
            f"customer_id={self.customer_id!r}, "
            f"transaction_id={self.transaction_id})>"
        )


Index(
    "idx_indications_affiliate_created",
    Indication.affiliate_id,
    Indication.created_at,
)
