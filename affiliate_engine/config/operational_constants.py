"""
Operational constants for the affiliate engine workers.

Retry and time limit settings for background jobs, and the schedule of
the periodic ones.
"""

# =============================================================================
# RETRY CONFIGURATIONS
# =============================================================================

# Default retry count for most jobs
DEFAULT_MAX_RETRIES = 3

# Transaction feed (must not drop deliveries)
INGESTION_MAX_RETRIES = 10

# Backoff between retries (milliseconds)
RETRY_MIN_BACKOFF = 1_000
RETRY_MAX_BACKOFF = 60_000


# =============================================================================
# DRAMATIQ TASK TIME LIMITS (milliseconds)
# =============================================================================

# Short tasks (1 minute) - single transaction, config publish
DRAMATIQ_TIME_LIMIT_SHORT = 60_000

# Standard tasks (5 minutes) - inactivity sweep
DRAMATIQ_TIME_LIMIT_STANDARD = 300_000

# Long tasks (30 minutes) - period settlement
DRAMATIQ_TIME_LIMIT_LONG = 1_800_000


# =============================================================================
# SCHEDULE (UTC)
# =============================================================================

# Weekly settlement: Monday, after the period closed at 00:00
WEEKLY_SETTLEMENT_DAY_OF_WEEK = "mon"
WEEKLY_SETTLEMENT_HOUR = 0
WEEKLY_SETTLEMENT_MINUTE = 15

# Monthly settlement: first day of the month
MONTHLY_SETTLEMENT_HOUR = 0
MONTHLY_SETTLEMENT_MINUTE = 30

# Daily inactivity sweep
INACTIVITY_SWEEP_HOUR = 3
INACTIVITY_SWEEP_MINUTE = 0

# APScheduler misfire grace (seconds)
SCHEDULER_MISFIRE_GRACE_TIME = 300
