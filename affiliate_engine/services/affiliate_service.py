"""
Affiliate service.

Registration with sponsor resolution, status transitions and feature
gates. Affiliates are never deleted; leaving the network is a status.
"""

import secrets
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from affiliate_engine.models.affiliate import Affiliate
from affiliate_engine.models.enums import AffiliateCategory, AffiliateStatus
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.progression.calculator import revshare_rates
from affiliate_engine.utils.datetime_utils import utc_now
from affiliate_engine.utils.exceptions import AffiliateNotFoundError, RegistrationError

# Attempts at drawing an unused referral code before giving up
REFERRAL_CODE_ATTEMPTS = 5


class SponsorLookupStatus(StrEnum):
    """Outcome of resolving a referral code."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class SponsorLookup:
    """
    Result of a sponsor lookup.

    NOT_FOUND means no affiliate owns the code; INACTIVE means one does
    but it cannot sponsor. Only FOUND carries an affiliate.
    """

    status: SponsorLookupStatus
    affiliate: Affiliate | None = None

    @property
    def found(self) -> bool:
        return self.status == SponsorLookupStatus.FOUND


class AffiliateService(BaseService):
    """Affiliate lifecycle operations."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.affiliate_repo = AffiliateRepository(self.session)

    async def get_affiliate(self, affiliate_id: int) -> Affiliate:
        """
        Get affiliate by ID.

        Raises:
            AffiliateNotFoundError: If the affiliate does not exist
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)
        return affiliate

    async def lookup_sponsor(self, referral_code: str) -> SponsorLookup:
        """Resolve a referral code to a sponsor that may recruit."""
        sponsor = await self.affiliate_repo.get_by_referral_code(referral_code)
        if sponsor is None:
            return SponsorLookup(SponsorLookupStatus.NOT_FOUND)
        if not sponsor.is_active:
            return SponsorLookup(SponsorLookupStatus.INACTIVE, sponsor)
        return SponsorLookup(SponsorLookupStatus.FOUND, sponsor)

    @transaction
    async def register_affiliate(
        self, user_id: str, sponsor_code: str | None = None
    ) -> Affiliate:
        """
        Register a new affiliate.

        New affiliates start in the entry category at level 1 with the
        bottom RevShare rates of that category.

        Args:
            user_id: Linked external user ID
            sponsor_code: Referral code of the sponsor (optional)

        Returns:
            Created affiliate

        Raises:
            RegistrationError: If the user is already registered, or the
                sponsor code is unknown or belongs to an inactive affiliate
        """
        if await self.affiliate_repo.get_by_user_id(user_id):
            raise RegistrationError(f"User {user_id} is already an affiliate")

        sponsor = None
        if sponsor_code:
            lookup = await self.lookup_sponsor(sponsor_code)
            if not lookup.found:
                self.logger.warning(
                    "Registration rejected by sponsor lookup",
                    extra={
                        "user_id": user_id,
                        "sponsor_code": sponsor_code,
                        "lookup": lookup.status.value,
                    },
                )
                raise RegistrationError(
                    f"Sponsor code {sponsor_code!r}: {lookup.status.value}"
                )
            sponsor = lookup.affiliate

        category = AffiliateCategory.default()
        rates = revshare_rates(self.config.category_config(category), 1)

        affiliate = await self.affiliate_repo.create(
            user_id=user_id,
            referral_code=await self._new_referral_code(),
            sponsor_id=sponsor.id if sponsor else None,
            depth=sponsor.depth + 1 if sponsor else 0,
            category=category.value,
            category_level=1,
            revshare_level1_pct=rates.level1,
            revshare_levels2to5_pct=rates.levels2to5,
            status=AffiliateStatus.ACTIVE.value,
            last_activity_at=utc_now(),
        )

        self.logger.info(
            "Affiliate registered",
            extra={
                "affiliate_id": affiliate.id,
                "user_id": user_id,
                "sponsor_id": affiliate.sponsor_id,
                "depth": affiliate.depth,
            },
        )
        return affiliate

    @transaction
    async def set_status(
        self, affiliate_id: int, status: AffiliateStatus
    ) -> Affiliate:
        """
        Change an affiliate's status.

        Raises:
            AffiliateNotFoundError: If the affiliate does not exist
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id, for_update=True)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)

        old_status = affiliate.status
        if old_status != status.value:
            affiliate.status = status.value
            await self.session.flush()
            self.logger.info(
                "Affiliate status changed",
                extra={
                    "affiliate_id": affiliate_id,
                    "old_status": old_status,
                    "new_status": status.value,
                },
            )
        return affiliate

    async def features_for(self, affiliate_id: int) -> tuple[str, ...]:
        """Feature gates unlocked by an affiliate's category."""
        affiliate = await self.get_affiliate(affiliate_id)
        try:
            category = AffiliateCategory(affiliate.category)
        except ValueError:
            category = AffiliateCategory.default()
        return self.config.features_for(category)

    async def _new_referral_code(self) -> str:
        for _ in range(REFERRAL_CODE_ATTEMPTS):
            code = secrets.token_urlsafe(8)
            if not await self.affiliate_repo.referral_code_exists(code):
                return code
        raise RegistrationError("Could not allocate a unique referral code")
