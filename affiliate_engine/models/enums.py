"""
Enumerations shared by models and services.

Values are stored as plain strings in the database.
"""

from enum import StrEnum


class AffiliateCategory(StrEnum):
    """Affiliate category, ordered from entry level to top level."""

    JOGADOR = "jogador"
    INICIANTE = "iniciante"
    AFILIADO = "afiliado"
    PROFISSIONAL = "profissional"
    EXPERT = "expert"
    MESTRE = "mestre"
    LENDA = "lenda"

    @property
    def rank(self) -> int:
        """Position of the category in the progression order (0-based)."""
        return CATEGORY_ORDER.index(self)

    @classmethod
    def default(cls) -> "AffiliateCategory":
        """Category assigned to new affiliates and used as fallback."""
        return cls.JOGADOR


CATEGORY_ORDER: tuple[AffiliateCategory, ...] = tuple(AffiliateCategory)


class AffiliateStatus(StrEnum):
    """Affiliate account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    BANNED = "banned"


class TransactionType(StrEnum):
    """Customer transaction types."""

    DEPOSIT = "deposit"
    BET = "bet"
    SALE = "sale"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(StrEnum):
    """Customer transaction status."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CommissionType(StrEnum):
    """Commission types."""

    CPA = "cpa"
    REVSHARE = "revshare"
    BONUS = "bonus"


class CommissionStatus(StrEnum):
    """Commission lifecycle status."""

    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class CPAModel(StrEnum):
    """CPA validation models."""

    FIRST_DEPOSIT = "1.1"
    ACTIVITY = "1.2"


class SettlementPeriodType(StrEnum):
    """RevShare settlement period types."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class SettlementStatus(StrEnum):
    """RevShare settlement period status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SETTLED = "settled"


class VaultFrequency(StrEnum):
    """Vault distribution frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
