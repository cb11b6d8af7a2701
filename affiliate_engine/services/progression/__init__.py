"""
Category/level progression package.

- calculator: pure band, sub-level and RevShare rate math
- engine: applies progression to stored affiliates
"""

from affiliate_engine.services.progression.calculator import (
    CategoryPosition,
    RevShareRates,
    position_for,
    revshare_rates,
    sub_level_for,
)
from affiliate_engine.services.progression.engine import (
    ProgressionEngine,
    ProgressionResult,
)

__all__ = [
    "CategoryPosition",
    "ProgressionEngine",
    "ProgressionResult",
    "RevShareRates",
    "position_for",
    "revshare_rates",
    "sub_level_for",
]
