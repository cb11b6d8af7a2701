"""
Commission model.

One payout line for one recipient at one hierarchy level.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import CommissionStatus
from affiliate_engine.models.types import MoneyType, PercentType, UTCDateTime

# Rows in these states no longer count for the at-most-once guarantee
_LIVE_CPA_ROW = text("status != 'cancelled' AND transaction_id IS NOT NULL")
_LIVE_REVSHARE_ROW = text(
    "status != 'cancelled' AND settlement_period_id IS NOT NULL"
)


class Commission(Base):
    """
    Commission entity.

    Level 0 is the direct-referral bonus, level 1 the direct sponsor,
    levels 2-5 indirect sponsors.

    Uniqueness:
        CPA/bonus rows: one live row per (transaction, recipient, level)
        RevShare rows: one live row per (period, source, recipient, level)
    """

    __tablename__ = "commissions"
    __table_args__ = (
        Index(
            "uq_commissions_transaction_recipient_level",
            "transaction_id",
            "affiliate_id",
            "level",
            unique=True,
            postgresql_where=_LIVE_CPA_ROW,
            sqlite_where=_LIVE_CPA_ROW,
        ),
        Index(
            "uq_commissions_period_source_recipient_level",
            "settlement_period_id",
            "source_affiliate_id",
            "affiliate_id",
            "level",
            unique=True,
            postgresql_where=_LIVE_REVSHARE_ROW,
            sqlite_where=_LIVE_REVSHARE_ROW,
        ),
        Index("idx_commissions_affiliate_status", "affiliate_id", "status"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Recipient
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id"), nullable=False, index=True
    )
    # Affiliate whose referral generated the value
    source_affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliates.id"), nullable=True
    )
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    settlement_period_id: Mapped[int | None] = mapped_column(
        ForeignKey("revshare_periods.id"), nullable=True
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    base_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    percentage: Mapped[Decimal | None] = mapped_column(PercentType, nullable=True)
    commission_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=CommissionStatus.CALCULATED.value, nullable=False
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"Commission(id={self.id}, affiliate_id={self.affiliate_id}, "
            f"type={self.type}, level={self.level}, "
            f"final_amount={self.final_amount}, status={self.status})"
        )
