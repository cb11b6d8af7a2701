"""
Services.

Commission and hierarchy engine business logic.
"""

from affiliate_engine.services.affiliate_service import (
    AffiliateService,
    SponsorLookup,
    SponsorLookupStatus,
)
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.commission import (
    CommissionDistributor,
    CommissionService,
    DistributionResult,
)
from affiliate_engine.services.configuration_provider import (
    ConfigurationProvider,
    DefaultConfigSource,
    RedisConfigSource,
)
from affiliate_engine.services.cpa_validator import CPAValidator, ValidationResult
from affiliate_engine.services.events import EngineEvents, EventBus, event_bus
from affiliate_engine.services.hierarchy_resolver import (
    ChainNode,
    HierarchyChain,
    HierarchyResolver,
)
from affiliate_engine.services.inactivity_tracker import (
    InactivityRunResult,
    InactivityTracker,
)
from affiliate_engine.services.progression import ProgressionEngine, ProgressionResult
from affiliate_engine.services.revshare_settlement import (
    RevShareSettlementService,
    SettlementResult,
)
from affiliate_engine.services.transaction_ingestion import (
    IngestResult,
    TransactionIngestionService,
    TransactionPayload,
)

__all__ = [
    # Base
    "BaseService",
    "transaction",
    # Configuration
    "ConfigurationProvider",
    "DefaultConfigSource",
    "RedisConfigSource",
    # Events
    "EngineEvents",
    "EventBus",
    "event_bus",
    # Engine
    "AffiliateService",
    "CPAValidator",
    "ChainNode",
    "CommissionDistributor",
    "CommissionService",
    "DistributionResult",
    "HierarchyChain",
    "HierarchyResolver",
    "InactivityRunResult",
    "InactivityTracker",
    "IngestResult",
    "ProgressionEngine",
    "ProgressionResult",
    "RevShareSettlementService",
    "SettlementResult",
    "SponsorLookup",
    "SponsorLookupStatus",
    "TransactionIngestionService",
    "TransactionPayload",
    "ValidationResult",
]
