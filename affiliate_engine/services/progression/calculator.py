"""
Progression calculator.

Pure category, sub-level and RevShare math over a configuration snapshot.
No database access: every function depends only on its arguments.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from affiliate_engine.config.engine_config import CategoryConfig, EngineConfig
from affiliate_engine.models.enums import AffiliateCategory

# RevShare percentages are stored with 4 decimal places
PERCENT_QUANTUM = Decimal("0.0001")


class CategoryPosition(NamedTuple):
    """Category and sub-level a count maps to."""

    category: AffiliateCategory
    level: int
    in_band: bool


class RevShareRates(NamedTuple):
    """RevShare percentages for direct and indirect NGR."""

    level1: Decimal
    levels2to5: Decimal

    def for_level(self, level: int) -> Decimal:
        """Rate of a hierarchy level (1 = direct)."""
        return self.level1 if level == 1 else self.levels2to5


def sub_level_for(total_indications: int, category_config: CategoryConfig) -> int:
    """
    Interpolate the sub-level of a count inside its category band.

    The first count of the band maps to level 1, the last count of the
    band ([min, max) so max - 1) maps to the category's top level.

    Example:
        Band [0, 11) with 2 levels: 0..9 -> 1, 10 -> 2
    """
    levels = category_config.levels
    if levels == 1:
        return 1

    span = category_config.max_indications - 1 - category_config.min_indications
    if span <= 0:
        return levels

    position = total_indications - category_config.min_indications
    position = min(max(position, 0), span)
    return 1 + (position * (levels - 1)) // span


def position_for(total_indications: int, config: EngineConfig) -> CategoryPosition:
    """
    Map a total indication count to its category and sub-level.

    Counts beyond the top band are clamped to the top category and flagged
    with in_band=False.
    """
    category_config, in_band = config.category_for_count(total_indications)
    return CategoryPosition(
        category=category_config.category,
        level=sub_level_for(total_indications, category_config),
        in_band=in_band,
    )


def _interpolate(band: tuple[Decimal, Decimal], progress: Decimal) -> Decimal:
    low, high = band
    rate = Decimal(low) + (Decimal(high) - Decimal(low)) * progress
    return rate.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def revshare_rates(category_config: CategoryConfig, level: int) -> RevShareRates:
    """
    Interpolate RevShare percentages for a category sub-level.

    Progress through the band is (level - 1) / (levels - 1); a category
    with a single level pays the bottom of its band. Levels outside
    1..levels are clamped.

    Args:
        category_config: Category table
        level: Category sub-level

    Returns:
        RevShareRates within the category bands
    """
    levels = category_config.levels
    level = min(max(level, 1), levels)
    if levels == 1:
        progress = Decimal("0")
    else:
        progress = Decimal(level - 1) / Decimal(levels - 1)

    return RevShareRates(
        level1=_interpolate(category_config.revshare_level1, progress),
        levels2to5=_interpolate(category_config.revshare_levels2to5, progress),
    )
