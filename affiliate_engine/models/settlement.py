"""
RevShare settlement models.

RevSharePeriod is one settlement window; RevShareSettlement is the result
for one affiliate inside that window.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import SettlementStatus
from affiliate_engine.models.types import MoneyType, UTCDateTime


class RevSharePeriod(Base):
    """Settlement window [start_at, end_at)."""

    __tablename__ = "revshare_periods"
    __table_args__ = (
        UniqueConstraint(
            "period_type", "start_at", "end_at", name="uq_revshare_period_bounds"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SettlementStatus.PENDING.value, nullable=False, index=True
    )

    # Totals over all affiliates
    total_ngr: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_distributed: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    negative_carryover: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    settled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @property
    def is_settled(self) -> bool:
        """Check if period was fully settled."""
        return self.status == SettlementStatus.SETTLED

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RevSharePeriod(id={self.id}, type={self.period_type}, "
            f"{self.start_at.isoformat()} -> {self.end_at.isoformat()}, "
            f"status={self.status})>"
        )


class RevShareSettlement(Base):
    """Per-affiliate settlement inside a period."""

    __tablename__ = "revshare_settlements"
    __table_args__ = (
        UniqueConstraint(
            "period_id", "affiliate_id", name="uq_revshare_settlement_affiliate"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("revshare_periods.id"), nullable=False, index=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id"), nullable=False, index=True
    )

    ggr: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    bonuses: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    ngr: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    carryover_applied: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    settled_ngr: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    carryover_out: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_distributed: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )
