"""
Commission services package.

- distributor: CPA and RevShare distribution over the sponsor chain
- workflow: status transitions and balance movements
"""

from affiliate_engine.services.commission_writer import CommissionLine, CommissionWriter
from affiliate_engine.services.commission.distributor import (
    CommissionDistributor,
    DistributionResult,
    SkippedPayout,
)
from affiliate_engine.services.commission.workflow import (
    ALLOWED_TRANSITIONS,
    CommissionService,
    TransitionResult,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CommissionDistributor",
    "CommissionLine",
    "CommissionService",
    "CommissionWriter",
    "DistributionResult",
    "SkippedPayout",
    "TransitionResult",
]
