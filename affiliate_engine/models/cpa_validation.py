"""
CPA validation model.

Terminal state of the CPA state machine for a (customer, affiliate) pair.
A row exists only once the pair has been validated.
"""

from datetime import UTC, datetime

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import UTCDateTime


class CPAValidation(Base):
    """Validated (customer, affiliate) pair and the model that passed."""

    __tablename__ = "cpa_validations"
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "affiliate_id", name="uq_cpa_validations_pair"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id"), nullable=False, index=True
    )
    model: Mapped[str] = mapped_column(String(8), nullable=False)
    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    validated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CPAValidation(customer_id={self.customer_id!r}, "
            f"affiliate_id={self.affiliate_id}, model={self.model})>"
        )
