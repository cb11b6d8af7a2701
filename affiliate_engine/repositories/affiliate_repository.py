"""
Affiliate repository.

Data access layer for Affiliate model. Counter and balance changes are
atomic UPDATE statements so concurrent workers never lose an increment.
"""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.affiliate import Affiliate
from affiliate_engine.models.enums import AffiliateStatus
from affiliate_engine.repositories.base import BaseRepository

# Balance columns a commission amount can sit in
BALANCE_BUCKETS = ("available_balance", "locked_balance")


class SponsorLink(NamedTuple):
    """Minimal affiliate row read while walking the hierarchy."""

    id: int
    sponsor_id: int | None
    status: str
    category: str


class AffiliateRepository(BaseRepository[Affiliate]):
    """Affiliate repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate repository."""
        super().__init__(Affiliate, session)

    async def get_by_referral_code(self, referral_code: str) -> Affiliate | None:
        """Get affiliate by referral code."""
        return await self.get_by(referral_code=referral_code)

    async def get_by_user_id(self, user_id: str) -> Affiliate | None:
        """Get affiliate by linked external user ID."""
        return await self.get_by(user_id=user_id)

    async def get_link(self, affiliate_id: int) -> SponsorLink | None:
        """
        Read the hierarchy fields of one affiliate.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            SponsorLink or None if the affiliate does not exist
        """
        stmt = select(
            Affiliate.id, Affiliate.sponsor_id, Affiliate.status, Affiliate.category
        ).where(Affiliate.id == affiliate_id)
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        return SponsorLink(*row) if row else None

    async def increment_indications(self, affiliate_id: int, direct: bool) -> None:
        """
        Add one validated indication.

        Args:
            affiliate_id: Affiliate ID
            direct: Also count it as a direct indication
        """
        values = {"total_indications": Affiliate.total_indications + 1}
        if direct:
            values["direct_indications"] = Affiliate.direct_indications + 1
        stmt = update(Affiliate).where(Affiliate.id == affiliate_id).values(**values)
        await self.session.execute(stmt)

    async def credit_commission(
        self, affiliate_id: int, amount: Decimal, bucket: str = "locked_balance"
    ) -> None:
        """
        Credit a new commission to an affiliate.

        Args:
            affiliate_id: Recipient ID
            amount: Commission final amount
            bucket: Balance column receiving the amount
        """
        if bucket not in BALANCE_BUCKETS:
            raise ValueError(f"Unknown balance bucket: {bucket}")
        column = getattr(Affiliate, bucket)
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(
                {
                    bucket: column + amount,
                    "lifetime_commissions": Affiliate.lifetime_commissions + amount,
                    "current_period_commissions": (
                        Affiliate.current_period_commissions + amount
                    ),
                }
            )
        )
        await self.session.execute(stmt)

    async def move_balance(
        self,
        affiliate_id: int,
        amount: Decimal,
        from_bucket: str | None,
        to_bucket: str | None,
        lifetime_delta: Decimal = Decimal("0"),
    ) -> None:
        """
        Move an amount between balance buckets.

        A None bucket means the amount enters from, or leaves to, outside
        the affiliate's balances.
        """
        values = {}
        for bucket, sign in ((from_bucket, -1), (to_bucket, 1)):
            if bucket is None:
                continue
            if bucket not in BALANCE_BUCKETS:
                raise ValueError(f"Unknown balance bucket: {bucket}")
            values[bucket] = getattr(Affiliate, bucket) + sign * amount
        if lifetime_delta:
            values["lifetime_commissions"] = (
                Affiliate.lifetime_commissions + lifetime_delta
            )
        if not values:
            return
        stmt = update(Affiliate).where(Affiliate.id == affiliate_id).values(values)
        await self.session.execute(stmt)

    async def add_volume(self, affiliate_id: int, amount: Decimal) -> None:
        """Add transaction volume to lifetime and current-period totals."""
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(
                lifetime_volume=Affiliate.lifetime_volume + amount,
                current_period_volume=Affiliate.current_period_volume + amount,
            )
        )
        await self.session.execute(stmt)

    async def touch_activity(self, affiliate_id: int, at: datetime) -> None:
        """
        Refresh last_activity_at unless a reduction is in force.

        The timestamp only moves forward.
        """
        stmt = (
            update(Affiliate)
            .where(
                Affiliate.id == affiliate_id,
                Affiliate.inactivity_reduction_pct == 0,
                Affiliate.last_activity_at < at,
            )
            .values(last_activity_at=at)
        )
        await self.session.execute(stmt)

    async def set_carryover(self, affiliate_id: int, carryover: Decimal) -> None:
        """Store the negative NGR owed to the next period."""
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(revshare_carryover=carryover)
        )
        await self.session.execute(stmt)

    async def reset_period_totals(self) -> int:
        """Zero current-period volume and commissions of every affiliate."""
        stmt = update(Affiliate).values(
            current_period_volume=Decimal("0"),
            current_period_commissions=Decimal("0"),
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def find_dormant(self, cutoff: datetime) -> list[Affiliate]:
        """
        Find affiliates with no activity since cutoff.

        Banned affiliates are excluded; they receive no payouts anyway.
        """
        stmt = (
            select(Affiliate)
            .where(
                Affiliate.last_activity_at < cutoff,
                Affiliate.status != AffiliateStatus.BANNED.value,
            )
            .order_by(Affiliate.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_under_reduction(self) -> list[Affiliate]:
        """Find affiliates with an inactivity reduction in force."""
        stmt = (
            select(Affiliate)
            .where(Affiliate.inactive_since.is_not(None))
            .order_by(Affiliate.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def referral_code_exists(self, referral_code: str) -> bool:
        """Check if a referral code is already taken."""
        return await self.count(referral_code=referral_code) > 0
