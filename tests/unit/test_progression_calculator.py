"""Unit tests for category, sub-level and RevShare rate math."""

from decimal import Decimal

import pytest

from affiliate_engine.models.enums import AffiliateCategory
from affiliate_engine.services.progression.calculator import (
    position_for,
    revshare_rates,
    sub_level_for,
)


class TestSubLevel:
    """Sub-level interpolation inside a category band."""

    @pytest.mark.parametrize(
        "count,expected",
        [(0, 1), (5, 1), (9, 1), (10, 2)],
    )
    def test_jogador_band(self, config, count, expected):
        """Band [0, 11) with 2 levels: only the last count reaches level 2."""
        jogador = config.category_config(AffiliateCategory.JOGADOR)

        assert sub_level_for(count, jogador) == expected

    @pytest.mark.parametrize(
        "count,expected",
        [(31, 1), (65, 3), (100, 7)],
    )
    def test_afiliado_band(self, config, count, expected):
        """Band [31, 101) spreads 7 levels over its counts."""
        afiliado = config.category_config(AffiliateCategory.AFILIADO)

        assert sub_level_for(count, afiliado) == expected

    def test_count_outside_band_is_clamped(self, config):
        """Counts outside the band stay within 1..levels."""
        iniciante = config.category_config(AffiliateCategory.INICIANTE)

        assert sub_level_for(0, iniciante) == 1
        assert sub_level_for(500, iniciante) == iniciante.levels


class TestPosition:
    """Mapping of total indications to category and level."""

    def test_boundary_belongs_to_upper_category(self, config):
        """Bands are closed-open: 11 is the first iniciante count."""
        assert position_for(10, config).category == AffiliateCategory.JOGADOR
        position = position_for(11, config)

        assert position.category == AffiliateCategory.INICIANTE
        assert position.level == 1
        assert position.in_band is True

    def test_count_beyond_top_band(self, config):
        """Counts above every band clamp to the top category."""
        position = position_for(2_000_000_000, config)

        assert position.category == AffiliateCategory.LENDA
        assert position.in_band is False


class TestRevShareRates:
    """RevShare percentage interpolation."""

    def test_bottom_and_top_of_jogador(self, config):
        """Level 1 pays the bottom of the band, the last level the top."""
        jogador = config.category_config(AffiliateCategory.JOGADOR)

        assert revshare_rates(jogador, 1).level1 == Decimal("1.0000")
        assert revshare_rates(jogador, 2).level1 == Decimal("6.0000")
        assert revshare_rates(jogador, 2).levels2to5 == Decimal("1.0000")

    def test_midpoint_of_afiliado(self, config):
        """Level 4 of 7 sits halfway through the band."""
        afiliado = config.category_config(AffiliateCategory.AFILIADO)

        rates = revshare_rates(afiliado, 4)

        assert rates.level1 == Decimal("15.0000")
        assert rates.levels2to5 == Decimal("3.0000")

    def test_rates_stay_within_band(self, config):
        """Every level of every category pays inside its configured range."""
        for category_config in config.categories:
            for level in range(1, category_config.levels + 1):
                rates = revshare_rates(category_config, level)
                low, high = category_config.revshare_level1
                assert low <= rates.level1 <= high

    def test_for_level_picks_direct_or_indirect_rate(self, config):
        """Level 1 uses the direct rate, levels 2-5 the indirect one."""
        rates = revshare_rates(config.category_config(AffiliateCategory.INICIANTE), 2)

        assert rates.for_level(1) == Decimal("12.0000")
        assert rates.for_level(3) == Decimal("2.0000")
