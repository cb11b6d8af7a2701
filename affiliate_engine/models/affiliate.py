"""
Affiliate model.

Represents a node of the referral network with its progression and
financial state.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import AffiliateCategory, AffiliateStatus
from affiliate_engine.models.types import MoneyType, PercentType, UTCDateTime


class Affiliate(Base):
    """Affiliate model - referral network members."""

    __tablename__ = "affiliates"
    __table_args__ = (
        CheckConstraint(
            'category_level >= 1', name='check_affiliate_category_level_positive'
        ),
        CheckConstraint(
            'direct_indications >= 0',
            name='check_affiliate_direct_indications_non_negative'
        ),
        CheckConstraint(
            'total_indications >= direct_indications',
            name='check_affiliate_total_covers_direct'
        ),
        CheckConstraint(
            'revshare_carryover >= 0',
            name='check_affiliate_carryover_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    user_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    referral_code: Mapped[str] = mapped_column(
        String(20), unique=True, index=True, nullable=False
    )

    # Hierarchy
    sponsor_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    depth: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Progression
    category: Mapped[str] = mapped_column(
        String(20), default=AffiliateCategory.JOGADOR.value, nullable=False, index=True
    )
    category_level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    direct_indications: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_indications: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    revshare_level1_pct: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("0"), nullable=False
    )
    revshare_levels2to5_pct: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("0"), nullable=False
    )

    # Inactivity reduction (kept apart from the base percentages)
    inactivity_reduction_pct: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("0"), nullable=False
    )
    inactive_since: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Negative NGR owed to the next settlement period
    revshare_carryover: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Financial
    lifetime_commissions: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    lifetime_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    current_period_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    current_period_commissions: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    available_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    locked_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=AffiliateStatus.ACTIVE.value, nullable=False, index=True
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        """Check if affiliate can receive payouts."""
        return self.status == AffiliateStatus.ACTIVE

    @property
    def category_enum(self) -> AffiliateCategory:
        """Stored category as enum member."""
        return AffiliateCategory(self.category)

    @property
    def reduction_factor(self) -> Decimal:
        """Multiplier applied to RevShare payouts while inactive."""
        return (Decimal("100") - Decimal(self.inactivity_reduction_pct)) / Decimal("100")

    def revshare_rate_for(self, level: int) -> Decimal:
        """RevShare percentage for a hierarchy level (1 = direct)."""
        if level == 1:
            return Decimal(self.revshare_level1_pct)
        return Decimal(self.revshare_levels2to5_pct)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Affiliate(id={self.id}, code={self.referral_code!r}, "
            f"sponsor_id={self.sponsor_id}, category={self.category}, "
            f"level={self.category_level}, total={self.total_indications})>"
        )
