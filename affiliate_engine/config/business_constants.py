"""
Default engine tables.

Single source of the built-in category, CPA, inactivity and vault tables.
A configuration document stored in Redis overrides them section by section.
"""

from decimal import Decimal

from affiliate_engine.models.enums import (
    AffiliateCategory,
    SettlementPeriodType,
    VaultFrequency,
)

DEFAULT_CONFIG_VERSION = "default-1"

BASIC_FEATURES = ("dashboard_basic", "wallet", "content")
ALL_FEATURES = ("all",)

# Indication bands are closed-open: [min_indications, max_indications)
CATEGORY_TABLE = [
    {
        "category": AffiliateCategory.JOGADOR,
        "min_indications": 0,
        "max_indications": 11,
        "levels": 2,
        "revshare_level1": (Decimal("1"), Decimal("6")),
        "revshare_levels2to5": (Decimal("1"), Decimal("1")),
        "bonification": Decimal("50"),
        "features": BASIC_FEATURES,
    },
    {
        "category": AffiliateCategory.INICIANTE,
        "min_indications": 11,
        "max_indications": 31,
        "levels": 2,
        "revshare_level1": (Decimal("6"), Decimal("12")),
        "revshare_levels2to5": (Decimal("2"), Decimal("2")),
        "bonification": Decimal("100"),
        "features": BASIC_FEATURES + ("reports_basic", "chests_basic"),
    },
    {
        "category": AffiliateCategory.AFILIADO,
        "min_indications": 31,
        "max_indications": 101,
        "levels": 7,
        "revshare_level1": (Decimal("12"), Decimal("18")),
        "revshare_levels2to5": (Decimal("3"), Decimal("3")),
        "bonification": Decimal("200"),
        "features": BASIC_FEATURES + ("reports_basic", "chests_all", "rankings_basic"),
    },
    {
        "category": AffiliateCategory.PROFISSIONAL,
        "min_indications": 101,
        "max_indications": 1001,
        "levels": 30,
        "revshare_level1": (Decimal("18"), Decimal("24")),
        "revshare_levels2to5": (Decimal("4"), Decimal("4")),
        "bonification": Decimal("500"),
        "features": BASIC_FEATURES + (
            "reports_advanced",
            "chests_all",
            "rankings_basic",
            "network_management",
            "api_basic",
        ),
    },
    {
        "category": AffiliateCategory.EXPERT,
        "min_indications": 1001,
        "max_indications": 10001,
        "levels": 90,
        "revshare_level1": (Decimal("24"), Decimal("30")),
        "revshare_levels2to5": (Decimal("5"), Decimal("5")),
        "bonification": Decimal("1000"),
        "features": ALL_FEATURES,
    },
    {
        "category": AffiliateCategory.MESTRE,
        "min_indications": 10001,
        "max_indications": 100001,
        "levels": 90,
        "revshare_level1": (Decimal("30"), Decimal("41.33")),
        "revshare_levels2to5": (Decimal("6"), Decimal("7")),
        "bonification": Decimal("2000"),
        "features": ALL_FEATURES,
    },
    {
        "category": AffiliateCategory.LENDA,
        "min_indications": 100001,
        "max_indications": 1_000_000_000,
        "levels": 90,
        "revshare_level1": (Decimal("36"), Decimal("42")),
        "revshare_levels2to5": (Decimal("6"), Decimal("7")),
        "bonification": Decimal("5000"),
        "features": ALL_FEATURES,
    },
]

# CPA flat amounts per hierarchy level (BRL)
CPA_LEVEL_AMOUNTS = {
    1: Decimal("35"),
    2: Decimal("10"),
    3: Decimal("5"),
    4: Decimal("5"),
    5: Decimal("5"),
}
CPA_DIRECT_BONUS = Decimal("5")

# Model 1.1: first deposit
CPA_FIRST_DEPOSIT_MINIMUM = Decimal("50")

# Model 1.2: deposit plus activity (bets OR GGR) in a trailing window
CPA_ACTIVITY_MINIMUM_DEPOSIT = Decimal("30")
CPA_ACTIVITY_MINIMUM_BETS = 10
CPA_ACTIVITY_MINIMUM_GGR = Decimal("20")

# Weeks inactive -> RevShare reduction percentage
INACTIVITY_SCHEDULE = {
    1: Decimal("5"),
    2: Decimal("10"),
    3: Decimal("20"),
    4: Decimal("30"),
    5: Decimal("40"),
    6: Decimal("50"),
    7: Decimal("60"),
    8: Decimal("75"),
    9: Decimal("100"),
}

# New indications needed to lift an inactivity reduction
REACTIVATION_INDICATIONS = {
    AffiliateCategory.JOGADOR: 1,
    AffiliateCategory.INICIANTE: 2,
    AffiliateCategory.AFILIADO: 3,
    AffiliateCategory.PROFISSIONAL: 5,
    AffiliateCategory.EXPERT: 8,
    AffiliateCategory.MESTRE: 12,
    AffiliateCategory.LENDA: 20,
}

# Vault distribution schedule (day_of_week: 0 = Sunday)
VAULT_FREQUENCY = VaultFrequency.WEEKLY
VAULT_DAY_OF_WEEK = 1
VAULT_HOUR = 10
VAULT_TIMEZONE = "America/Sao_Paulo"
VAULT_AFFILIATES_PERCENTAGE = Decimal("96")
VAULT_RANKINGS_PERCENTAGE = Decimal("4")
VAULT_MINIMUM_AMOUNT = Decimal("100")

# RevShare settlement cadence: weekly or monthly, never both
REVSHARE_PERIOD_TYPE = SettlementPeriodType.WEEKLY

# Maximum sponsor levels paid by CPA and RevShare
MAX_HIERARCHY_LEVELS = 5
