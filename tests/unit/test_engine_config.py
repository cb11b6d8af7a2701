"""Unit tests for the engine configuration snapshot."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from affiliate_engine.config.engine_config import (
    EngineConfig,
    build_default_config,
    default_config_document,
)
from affiliate_engine.models.enums import AffiliateCategory, SettlementPeriodType
from affiliate_engine.utils.exceptions import ConfigurationError


class TestDefaultConfig:
    """Built-in tables."""

    def test_default_tables_build(self):
        """Built-in document builds a valid snapshot."""
        config = build_default_config()

        assert config.version == "default-1"
        assert len(config.categories) == 7
        assert config.cpa.amount_for(1) == Decimal("35")
        assert config.cpa.direct_bonus == Decimal("5")
        assert config.revshare.retained_fraction == Decimal("0.96")
        assert config.revshare.period_type == SettlementPeriodType.WEEKLY

    def test_cpa_amount_beyond_depth_is_zero(self, config):
        """Levels past the table pay nothing."""
        assert config.cpa.amount_for(6) == Decimal("0")

    @pytest.mark.parametrize(
        "count,category,in_band",
        [
            (0, AffiliateCategory.JOGADOR, True),
            (10, AffiliateCategory.JOGADOR, True),
            (11, AffiliateCategory.INICIANTE, True),
            (101, AffiliateCategory.PROFISSIONAL, True),
            (1_000_000_000, AffiliateCategory.LENDA, False),
        ],
    )
    def test_category_for_count(self, config, count, category, in_band):
        """Each count falls in exactly one closed-open band."""
        found, found_in_band = config.category_for_count(count)

        assert found.category == category
        assert found_in_band is in_band

    def test_features_for_category(self, config):
        """Feature gates come from the category table."""
        assert "wallet" in config.features_for(AffiliateCategory.JOGADOR)
        assert config.features_for(AffiliateCategory.EXPERT) == ("all",)

    def test_snapshot_is_immutable(self, config):
        """Snapshots cannot be changed after build."""
        with pytest.raises(ValidationError):
            config.version = "other"


class TestConfigValidation:
    """Malformed tables are rejected as a whole."""

    def test_gap_between_bands(self):
        """Bands must be contiguous."""
        document = default_config_document()
        document["categories"][1]["min_indications"] = 12

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)

    def test_missing_category(self):
        """Every category must be configured."""
        document = default_config_document()
        document["categories"] = document["categories"][:-1]

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)

    def test_missing_cpa_level(self):
        """CPA table must define levels 1-5."""
        document = default_config_document()
        del document["cpa"]["level_amounts"][5]

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)

    def test_vault_split_must_total_100(self):
        """Vault shares must add up to 100%."""
        document = default_config_document()
        document["vault"]["rankings_percentage"] = Decimal("5")

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)

    def test_unknown_timezone(self):
        """Vault timezone must be a known IANA name."""
        document = default_config_document()
        document["vault"]["timezone"] = "Mars/Olympus_Mons"

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)

    def test_inverted_revshare_range(self):
        """RevShare ranges must be ordered."""
        document = default_config_document()
        document["categories"][0]["revshare_level1"] = (Decimal("6"), Decimal("1"))

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)

    def test_monthly_settlement_cadence(self):
        document = default_config_document()
        document["revshare"]["period_type"] = "monthly"

        config = EngineConfig.build(document)

        assert config.revshare.period_type == SettlementPeriodType.MONTHLY

    def test_custom_settlement_cadence_rejected(self):
        """Only weekly or monthly periods can be settled on a schedule."""
        document = default_config_document()
        document["revshare"]["period_type"] = "custom"

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)


class TestInactivitySchedule:
    """Step-function lookup of inactivity reductions."""

    @pytest.fixture
    def sparse_config(self):
        """Schedule {4 weeks: 20%, 8 weeks: 40%}."""
        document = default_config_document()
        document["inactivity"]["schedule"] = {4: Decimal("20"), 8: Decimal("40")}
        return EngineConfig.build(document)

    @pytest.mark.parametrize(
        "weeks,expected",
        [(0, "0"), (3, "0"), (4, "20"), (7, "20"), (8, "40"), (52, "40")],
    )
    def test_highest_threshold_not_above_weeks(self, sparse_config, weeks, expected):
        """The highest configured threshold <= weeks inactive applies."""
        assert sparse_config.inactivity.reduction_for(weeks) == Decimal(expected)

    def test_default_schedule(self, config):
        """Built-in schedule reaches 100% at 9 weeks."""
        assert config.inactivity.reduction_for(1) == Decimal("5")
        assert config.inactivity.reduction_for(9) == Decimal("100")

    def test_decreasing_schedule_rejected(self):
        """Reductions must not shrink with more weeks."""
        document = default_config_document()
        document["inactivity"]["schedule"] = {4: Decimal("40"), 8: Decimal("20")}

        with pytest.raises(ConfigurationError):
            EngineConfig.build(document)
