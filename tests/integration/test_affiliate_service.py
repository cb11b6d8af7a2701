"""Integration tests for affiliate registration and lifecycle."""

from decimal import Decimal

import pytest

from affiliate_engine.models import AffiliateCategory, AffiliateStatus
from affiliate_engine.services.affiliate_service import (
    AffiliateService,
    SponsorLookupStatus,
)
from affiliate_engine.utils.exceptions import AffiliateNotFoundError, RegistrationError


@pytest.fixture
def service(session, config, bus):
    return AffiliateService(session, config, bus)


class TestRegistration:
    """Registering new affiliates."""

    @pytest.mark.asyncio
    async def test_register_without_sponsor(self, service):
        affiliate = await service.register_affiliate("user-root")

        assert affiliate.sponsor_id is None
        assert affiliate.depth == 0
        assert affiliate.category == AffiliateCategory.JOGADOR.value
        assert affiliate.category_level == 1
        assert affiliate.revshare_level1_pct == Decimal("1")
        assert affiliate.referral_code

    @pytest.mark.asyncio
    async def test_register_with_sponsor_code(self, service, make_affiliate):
        sponsor = await make_affiliate()

        affiliate = await service.register_affiliate("user-new", sponsor.referral_code)

        assert affiliate.sponsor_id == sponsor.id
        assert affiliate.depth == sponsor.depth + 1
        assert affiliate.referral_code != sponsor.referral_code

    @pytest.mark.asyncio
    async def test_duplicate_user(self, service):
        await service.register_affiliate("user-1")

        with pytest.raises(RegistrationError):
            await service.register_affiliate("user-1")

    @pytest.mark.asyncio
    async def test_unknown_sponsor_code(self, service):
        with pytest.raises(RegistrationError):
            await service.register_affiliate("user-2", "NOPE")

    @pytest.mark.asyncio
    async def test_inactive_sponsor(self, service, make_affiliate):
        sponsor = await make_affiliate(status=AffiliateStatus.SUSPENDED)

        with pytest.raises(RegistrationError):
            await service.register_affiliate("user-3", sponsor.referral_code)


class TestSponsorLookup:
    """Referral code resolution."""

    @pytest.mark.asyncio
    async def test_statuses(self, service, make_affiliate):
        active = await make_affiliate()
        banned = await make_affiliate(status=AffiliateStatus.BANNED)

        found = await service.lookup_sponsor(active.referral_code)
        inactive = await service.lookup_sponsor(banned.referral_code)
        missing = await service.lookup_sponsor("MISSING")

        assert found.found and found.affiliate.id == active.id
        assert inactive.status == SponsorLookupStatus.INACTIVE
        assert not inactive.found
        assert missing.status == SponsorLookupStatus.NOT_FOUND
        assert missing.affiliate is None


class TestLifecycle:
    """Status changes and feature gates."""

    @pytest.mark.asyncio
    async def test_set_status(self, service, make_affiliate):
        affiliate = await make_affiliate()

        updated = await service.set_status(affiliate.id, AffiliateStatus.SUSPENDED)

        assert updated.status == AffiliateStatus.SUSPENDED.value
        assert not updated.is_active

    @pytest.mark.asyncio
    async def test_set_status_unknown(self, service):
        with pytest.raises(AffiliateNotFoundError):
            await service.set_status(777, AffiliateStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_features_follow_category(self, service, make_affiliate):
        jogador = await make_affiliate()
        afiliado = await make_affiliate(
            category=AffiliateCategory.AFILIADO,
            total_indications=40,
            direct_indications=40,
        )

        assert "rankings_basic" not in await service.features_for(jogador.id)
        assert "rankings_basic" in await service.features_for(afiliado.id)
