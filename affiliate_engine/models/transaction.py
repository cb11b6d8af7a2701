"""
Transaction model.

Append-only record of customer activity reported by the platform.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import TransactionStatus, TransactionType
from affiliate_engine.models.types import MoneyType, UTCDateTime


class Transaction(Base):
    """
    Transaction entity.

    Attributes:
        id: Primary key
        external_id: Platform transaction id (idempotency key of the feed)
        customer_id: Platform customer id
        affiliate_id: Affiliate that referred the customer
        type: deposit, bet, sale, bonus, adjustment, withdrawal
        amount: Transaction amount (stake for bets)
        win_amount: Amount paid back to the customer on a bet
        processed_at: Set once when the engine claims the transaction
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    external_id: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    customer_id: Mapped[str] = mapped_column(
        String(64), index=True, nullable=False
    )
    affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    win_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    currency: Mapped[str] = mapped_column(String(3), default="BRL", nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=TransactionStatus.PENDING.value, nullable=False
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    @property
    def ggr(self) -> Decimal:
        """Gross gaming revenue contributed by a bet."""
        if self.type != TransactionType.BET:
            return Decimal("0")
        return Decimal(self.amount) - Decimal(self.win_amount)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"Transaction(id={self.id}, external_id={self.external_id!r}, "
            f"type={self.type}, amount={self.amount}, status={self.status})"
        )


# Composite indexes
Index(
    "idx_transactions_customer_type_occurred",
    Transaction.customer_id,
    Transaction.type,
    Transaction.occurred_at,
)
Index(
    "idx_transactions_affiliate_occurred",
    Transaction.affiliate_id,
    Transaction.occurred_at,
)
