"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from affiliate_engine.models.affiliate import Affiliate
from affiliate_engine.models.base import Base
from affiliate_engine.models.commission import Commission
from affiliate_engine.models.cpa_validation import CPAValidation
from affiliate_engine.models.enums import (
    CATEGORY_ORDER,
    AffiliateCategory,
    AffiliateStatus,
    CommissionStatus,
    CommissionType,
    CPAModel,
    SettlementPeriodType,
    SettlementStatus,
    TransactionStatus,
    TransactionType,
    VaultFrequency,
)
from affiliate_engine.models.indication import Indication
from affiliate_engine.models.progression_event import CategoryProgressionEvent
from affiliate_engine.models.settlement import RevSharePeriod, RevShareSettlement
from affiliate_engine.models.transaction import Transaction
from affiliate_engine.models.vault import Vault

__all__ = [
    "Base",
    # Models
    "Affiliate",
    "CategoryProgressionEvent",
    "Commission",
    "CPAValidation",
    "Indication",
    "RevSharePeriod",
    "RevShareSettlement",
    "Transaction",
    "Vault",
    # Enums
    "CATEGORY_ORDER",
    "AffiliateCategory",
    "AffiliateStatus",
    "CommissionStatus",
    "CommissionType",
    "CPAModel",
    "SettlementPeriodType",
    "SettlementStatus",
    "TransactionStatus",
    "TransactionType",
    "VaultFrequency",
]
