"""
Engine configuration snapshot.

Immutable, versioned tables read by every engine service. A snapshot is
validated as a whole when built; services receive it explicitly and never
read shared mutable state.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from affiliate_engine.config import business_constants as bc
from affiliate_engine.config.settings import settings
from affiliate_engine.models.enums import (
    CATEGORY_ORDER,
    AffiliateCategory,
    SettlementPeriodType,
    VaultFrequency,
)
from affiliate_engine.utils.exceptions import ConfigurationError


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CategoryConfig(_Frozen):
    """Band, sub-levels, RevShare ranges and rewards of one category."""

    category: AffiliateCategory
    min_indications: int = Field(ge=0)
    max_indications: int  # exclusive
    levels: int = Field(ge=1)
    revshare_level1: tuple[Decimal, Decimal]
    revshare_levels2to5: tuple[Decimal, Decimal]
    bonification: Decimal = Field(ge=0)
    features: tuple[str, ...] = ()

    @model_validator(mode="after")
    def validate_ranges(self) -> "CategoryConfig":
        """Validate band and percentage ranges."""
        if self.max_indications <= self.min_indications:
            raise ValueError(
                f"{self.category}: max_indications must exceed min_indications"
            )
        for name in ("revshare_level1", "revshare_levels2to5"):
            low, high = getattr(self, name)
            if low < 0 or high > 100 or low > high:
                raise ValueError(f"{self.category}: invalid {name} range {low}-{high}")
        return self

    def contains(self, total_indications: int) -> bool:
        """Check if a count falls inside [min, max)."""
        return self.min_indications <= total_indications < self.max_indications


class FirstDepositModelConfig(_Frozen):
    """Model 1.1 thresholds."""

    enabled: bool = True
    minimum_deposit: Decimal = Field(gt=0)


class ActivityModelConfig(_Frozen):
    """Model 1.2 thresholds."""

    enabled: bool = True
    minimum_deposit: Decimal = Field(gt=0)
    minimum_bets: int = Field(ge=1)
    minimum_ggr: Decimal = Field(gt=0)
    window_days: int = Field(gt=0)


class CPAConfig(_Frozen):
    """CPA level amounts, direct bonus and validation models."""

    level_amounts: Mapping[int, Decimal]
    direct_bonus: Decimal = Field(ge=0)
    first_deposit: FirstDepositModelConfig
    activity: ActivityModelConfig

    @field_validator("level_amounts")
    @classmethod
    def validate_level_amounts(cls, v: Mapping[int, Decimal]) -> Mapping[int, Decimal]:
        """Require non-negative amounts for levels 1-5 only."""
        expected = set(range(1, bc.MAX_HIERARCHY_LEVELS + 1))
        if set(v) != expected:
            raise ValueError(f"CPA level amounts must define levels {sorted(expected)}")
        if any(amount < 0 for amount in v.values()):
            raise ValueError("CPA level amounts must be non-negative")
        return v

    def amount_for(self, level: int) -> Decimal:
        """Flat amount of a level, zero beyond the configured depth."""
        return self.level_amounts.get(level, Decimal("0"))


class RevShareConfig(_Frozen):
    """NGR computation parameters and the scheduled settlement cadence."""

    retained_fraction: Decimal = Field(gt=0, le=1)
    max_levels: int = Field(default=bc.MAX_HIERARCHY_LEVELS, ge=1, le=bc.MAX_HIERARCHY_LEVELS)
    period_type: SettlementPeriodType = bc.REVSHARE_PERIOD_TYPE

    @field_validator("period_type")
    @classmethod
    def validate_period_type(cls, v: SettlementPeriodType) -> SettlementPeriodType:
        """Only weekly or monthly periods can be scheduled."""
        if v == SettlementPeriodType.CUSTOM:
            raise ValueError("RevShare period_type must be weekly or monthly")
        return v


class InactivityConfig(_Frozen):
    """Reduction schedule and reactivation thresholds."""

    grace_days: int = Field(ge=0)
    schedule: Mapping[int, Decimal]
    reactivation: Mapping[AffiliateCategory, int]

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, v: Mapping[int, Decimal]) -> Mapping[int, Decimal]:
        """Reductions must be percentages growing with weeks."""
        previous = Decimal("0")
        for weeks in sorted(v):
            pct = v[weeks]
            if weeks < 1 or pct < 0 or pct > 100 or pct < previous:
                raise ValueError(f"Invalid inactivity step {weeks} weeks: {pct}%")
            previous = pct
        return v

    @field_validator("reactivation")
    @classmethod
    def validate_reactivation(
        cls, v: Mapping[AffiliateCategory, int]
    ) -> Mapping[AffiliateCategory, int]:
        """Every category needs a positive reactivation count."""
        missing = [c.value for c in CATEGORY_ORDER if c not in v]
        if missing:
            raise ValueError(f"Reactivation counts missing for {missing}")
        if any(count < 1 for count in v.values()):
            raise ValueError("Reactivation counts must be positive")
        return v

    def reduction_for(self, weeks_inactive: int) -> Decimal:
        """
        Reduction percentage for a number of inactive weeks.

        The schedule is a step function: the highest threshold not above
        weeks_inactive applies.
        """
        applicable = [w for w in self.schedule if w <= weeks_inactive]
        if not applicable:
            return Decimal("0")
        return self.schedule[max(applicable)]


class VaultConfig(_Frozen):
    """Vault distribution schedule and split."""

    frequency: VaultFrequency
    day_of_week: int = Field(ge=0, le=6)
    hour: int = Field(ge=0, le=23)
    timezone: str
    affiliates_percentage: Decimal = Field(ge=0, le=100)
    rankings_percentage: Decimal = Field(ge=0, le=100)
    minimum_amount: Decimal = Field(ge=0)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Timezone must be a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_split(self) -> "VaultConfig":
        """Shares must add up to 100%."""
        if self.affiliates_percentage + self.rankings_percentage != 100:
            raise ValueError("Vault affiliates and rankings percentages must sum to 100")
        return self


class EngineConfig(_Frozen):
    """
    Versioned snapshot of all engine tables.

    Categories are stored in progression order and cover the indication
    axis from 0 without gaps or overlaps.
    """

    version: str
    categories: tuple[CategoryConfig, ...]
    cpa: CPAConfig
    revshare: RevShareConfig
    inactivity: InactivityConfig
    vault: VaultConfig

    @model_validator(mode="after")
    def validate_categories(self) -> "EngineConfig":
        """Check category coverage and band contiguity."""
        found = tuple(c.category for c in self.categories)
        if found != CATEGORY_ORDER:
            raise ValueError(
                f"Categories must be exactly {[c.value for c in CATEGORY_ORDER]} in order"
            )
        if self.categories[0].min_indications != 0:
            raise ValueError("First category band must start at 0")
        for lower, upper in zip(self.categories, self.categories[1:]):
            if lower.max_indications != upper.min_indications:
                raise ValueError(
                    f"Bands of {lower.category} and {upper.category} are not contiguous"
                )
        return self

    def category_config(self, category: AffiliateCategory) -> CategoryConfig:
        """Get the table of one category."""
        for config in self.categories:
            if config.category == category:
                return config
        raise ConfigurationError(f"No configuration for category {category}")

    def category_for_count(self, total_indications: int) -> tuple[CategoryConfig, bool]:
        """
        Find the category band containing a count.

        Returns:
            Tuple of (category config, in_band). in_band is False when the
            count is beyond the top band and was clamped to it.
        """
        for config in self.categories:
            if config.contains(total_indications):
                return config, True
        return self.categories[-1], False

    def features_for(self, category: AffiliateCategory) -> tuple[str, ...]:
        """Feature gates unlocked by a category."""
        return self.category_config(category).features

    @classmethod
    def build(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """
        Validate a raw configuration document.

        Raises:
            ConfigurationError: If any table is missing or malformed
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e


def default_config_document() -> dict[str, Any]:
    """Raw configuration document with the built-in tables."""
    return {
        "version": bc.DEFAULT_CONFIG_VERSION,
        "categories": [dict(row) for row in bc.CATEGORY_TABLE],
        "cpa": {
            "level_amounts": dict(bc.CPA_LEVEL_AMOUNTS),
            "direct_bonus": bc.CPA_DIRECT_BONUS,
            "first_deposit": {
                "enabled": True,
                "minimum_deposit": bc.CPA_FIRST_DEPOSIT_MINIMUM,
            },
            "activity": {
                "enabled": True,
                "minimum_deposit": bc.CPA_ACTIVITY_MINIMUM_DEPOSIT,
                "minimum_bets": bc.CPA_ACTIVITY_MINIMUM_BETS,
                "minimum_ggr": bc.CPA_ACTIVITY_MINIMUM_GGR,
                "window_days": settings.cpa_validation_window_days,
            },
        },
        "revshare": {
            "retained_fraction": Decimal(str(settings.revshare_retained_fraction)),
            "max_levels": settings.hierarchy_max_depth,
            "period_type": bc.REVSHARE_PERIOD_TYPE,
        },
        "inactivity": {
            "grace_days": settings.inactivity_grace_days,
            "schedule": dict(bc.INACTIVITY_SCHEDULE),
            "reactivation": dict(bc.REACTIVATION_INDICATIONS),
        },
        "vault": {
            "frequency": bc.VAULT_FREQUENCY,
            "day_of_week": bc.VAULT_DAY_OF_WEEK,
            "hour": bc.VAULT_HOUR,
            "timezone": bc.VAULT_TIMEZONE,
            "affiliates_percentage": bc.VAULT_AFFILIATES_PERCENTAGE,
            "rankings_percentage": bc.VAULT_RANKINGS_PERCENTAGE,
            "minimum_amount": bc.VAULT_MINIMUM_AMOUNT,
        },
    }


def build_default_config() -> EngineConfig:
    """Snapshot of the built-in tables."""
    return EngineConfig.build(default_config_document())
