"""Create affiliate engine tables.

Revision ID: 20261017_000001_create_affiliate_engine_tables
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261017_000001_create_affiliate_engine_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

MONEY = sa.Numeric(18, 8)
PERCENT = sa.Numeric(7, 4)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.text("now()"),
    )


def upgrade() -> None:
    """Create affiliate network, transaction, commission and settlement tables."""
    # 1. Affiliates
    op.create_table(
        "affiliates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("referral_code", sa.String(length=20), nullable=False),
        sa.Column("sponsor_id", sa.Integer(), nullable=True),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="jogador"),
        sa.Column("category_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("direct_indications", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_indications", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("revshare_level1_pct", PERCENT, nullable=False, server_default="0"),
        sa.Column("revshare_levels2to5_pct", PERCENT, nullable=False, server_default="0"),
        sa.Column("inactivity_reduction_pct", PERCENT, nullable=False, server_default="0"),
        sa.Column("inactive_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revshare_carryover", MONEY, nullable=False, server_default="0"),
        sa.Column("lifetime_commissions", MONEY, nullable=False, server_default="0"),
        sa.Column("lifetime_volume", MONEY, nullable=False, server_default="0"),
        sa.Column("current_period_volume", MONEY, nullable=False, server_default="0"),
        sa.Column("current_period_commissions", MONEY, nullable=False, server_default="0"),
        sa.Column("available_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("locked_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        _timestamp("last_activity_at"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["sponsor_id"], ["affiliates.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "category_level >= 1", name="check_affiliate_category_level_positive"
        ),
        sa.CheckConstraint(
            "direct_indications >= 0",
            name="check_affiliate_direct_indications_non_negative",
        ),
        sa.CheckConstraint(
            "total_indications >= direct_indications",
            name="check_affiliate_total_covers_direct",
        ),
        sa.CheckConstraint(
            "revshare_carryover >= 0", name="check_affiliate_carryover_non_negative"
        ),
    )
    op.create_index("ix_affiliates_user_id", "affiliates", ["user_id"], unique=True)
    op.create_index(
        "ix_affiliates_referral_code", "affiliates", ["referral_code"], unique=True
    )
    op.create_index("ix_affiliates_sponsor_id", "affiliates", ["sponsor_id"])
    op.create_index("ix_affiliates_category", "affiliates", ["category"])
    op.create_index("ix_affiliates_status", "affiliates", ["status"])

    # 2. Transactions (append-only feed)
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("win_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="BRL"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _timestamp("occurred_at"),
        _timestamp("processed_at", nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_transactions_external_id", "transactions", ["external_id"], unique=True
    )
    op.create_index("ix_transactions_customer_id", "transactions", ["customer_id"])
    op.create_index("ix_transactions_affiliate_id", "transactions", ["affiliate_id"])
    op.create_index(
        "idx_transactions_customer_type_occurred",
        "transactions",
        ["customer_id", "type", "occurred_at"],
    )
    op.create_index(
        "idx_transactions_affiliate_occurred",
        "transactions",
        ["affiliate_id", "occurred_at"],
    )

    # 3. CPA validations
    op.create_table(
        "cpa_validations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("model", sa.String(length=8), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        _timestamp("validated_at"),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "affiliate_id", name="uq_cpa_validations_pair"),
    )
    op.create_index("ix_cpa_validations_affiliate_id", "cpa_validations", ["affiliate_id"])

    # 4. Indications
    op.create_table(
        "indications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_id"),
    )
    op.create_index(
        "idx_indications_affiliate_created",
        "indications",
        ["affiliate_id", "created_at"],
    )

    # 5. Category progression events
    op.create_table(
        "category_progression_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("from_category", sa.String(length=20), nullable=False),
        sa.Column("to_category", sa.String(length=20), nullable=False),
        sa.Column("total_indications", sa.Integer(), nullable=False),
        sa.Column("bonification_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("config_version", sa.String(length=32), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "affiliate_id", "to_category", name="uq_progression_affiliate_category"
        ),
    )
    op.create_index(
        "ix_category_progression_events_affiliate_id",
        "category_progression_events",
        ["affiliate_id"],
    )

    # 6. RevShare periods
    op.create_table(
        "revshare_periods",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("period_type", sa.String(length=20), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("total_ngr", MONEY, nullable=False, server_default="0"),
        sa.Column("total_distributed", MONEY, nullable=False, server_default="0"),
        sa.Column("negative_carryover", MONEY, nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("settled_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "period_type", "start_at", "end_at", name="uq_revshare_period_bounds"
        ),
    )
    op.create_index("ix_revshare_periods_status", "revshare_periods", ["status"])

    # 7. RevShare settlements (per affiliate and period)
    op.create_table(
        "revshare_settlements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("period_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("ggr", MONEY, nullable=False),
        sa.Column("bonuses", MONEY, nullable=False, server_default="0"),
        sa.Column("ngr", MONEY, nullable=False),
        sa.Column("carryover_applied", MONEY, nullable=False, server_default="0"),
        sa.Column("settled_ngr", MONEY, nullable=False),
        sa.Column("carryover_out", MONEY, nullable=False, server_default="0"),
        sa.Column("total_distributed", MONEY, nullable=False, server_default="0"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["period_id"], ["revshare_periods.id"]),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "period_id", "affiliate_id", name="uq_revshare_settlement_affiliate"
        ),
    )
    op.create_index(
        "ix_revshare_settlements_period_id", "revshare_settlements", ["period_id"]
    )
    op.create_index(
        "ix_revshare_settlements_affiliate_id", "revshare_settlements", ["affiliate_id"]
    )

    # 8. Vaults
    op.create_table(
        "vaults",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("period_id", sa.Integer(), nullable=False),
        sa.Column("total_ngr", MONEY, nullable=False),
        sa.Column("affiliates_pct", PERCENT, nullable=False),
        sa.Column("rankings_pct", PERCENT, nullable=False),
        sa.Column("affiliates_share", MONEY, nullable=False),
        sa.Column("rankings_share", MONEY, nullable=False),
        sa.Column("next_distribution_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["period_id"], ["revshare_periods.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("period_id"),
    )

    # 9. Commissions
    op.create_table(
        "commissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("source_affiliate_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        sa.Column("settlement_period_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("base_amount", MONEY, nullable=False),
        sa.Column("percentage", PERCENT, nullable=True),
        sa.Column("commission_amount", MONEY, nullable=False),
        sa.Column("final_amount", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="calculated"),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        _timestamp("approved_at", nullable=True),
        _timestamp("paid_at", nullable=True),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"]),
        sa.ForeignKeyConstraint(["source_affiliate_id"], ["affiliates.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.ForeignKeyConstraint(["settlement_period_id"], ["revshare_periods.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_commissions_affiliate_id", "commissions", ["affiliate_id"])
    op.create_index(
        "idx_commissions_affiliate_status", "commissions", ["affiliate_id", "status"]
    )

    # At most one live row per payout key; cancelled rows free the key
    op.create_index(
        "uq_commissions_transaction_recipient_level",
        "commissions",
        ["transaction_id", "affiliate_id", "level"],
        unique=True,
        postgresql_where=sa.text(
            "status != 'cancelled' AND transaction_id IS NOT NULL"
        ),
    )
    op.create_index(
        "uq_commissions_period_source_recipient_level",
        "commissions",
        ["settlement_period_id", "source_affiliate_id", "affiliate_id", "level"],
        unique=True,
        postgresql_where=sa.text(
            "status != 'cancelled' AND settlement_period_id IS NOT NULL"
        ),
    )


def downgrade() -> None:
    """Drop affiliate engine tables."""
    op.drop_index("uq_commissions_period_source_recipient_level", table_name="commissions")
    op.drop_index("uq_commissions_transaction_recipient_level", table_name="commissions")
    op.drop_index("idx_commissions_affiliate_status", table_name="commissions")
    op.drop_index("ix_commissions_affiliate_id", table_name="commissions")
    op.drop_table("commissions")

    op.drop_table("vaults")

    op.drop_index("ix_revshare_settlements_affiliate_id", table_name="revshare_settlements")
    op.drop_index("ix_revshare_settlements_period_id", table_name="revshare_settlements")
    op.drop_table("revshare_settlements")

    op.drop_index("ix_revshare_periods_status", table_name="revshare_periods")
    op.drop_table("revshare_periods")

    op.drop_index(
        "ix_category_progression_events_affiliate_id",
        table_name="category_progression_events",
    )
    op.drop_table("category_progression_events")

    op.drop_index("idx_indications_affiliate_created", table_name="indications")
    op.drop_table("indications")

    op.drop_index("ix_cpa_validations_affiliate_id", table_name="cpa_validations")
    op.drop_table("cpa_validations")

    op.drop_index("idx_transactions_affiliate_occurred", table_name="transactions")
    op.drop_index("idx_transactions_customer_type_occurred", table_name="transactions")
    op.drop_index("ix_transactions_affiliate_id", table_name="transactions")
    op.drop_index("ix_transactions_customer_id", table_name="transactions")
    op.drop_index("ix_transactions_external_id", table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_affiliates_status", table_name="affiliates")
    op.drop_index("ix_affiliates_category", table_name="affiliates")
    op.drop_index("ix_affiliates_sponsor_id", table_name="affiliates")
    op.drop_index("ix_affiliates_referral_code", table_name="affiliates")
    op.drop_index("ix_affiliates_user_id", table_name="affiliates")
    op.drop_table("affiliates")
