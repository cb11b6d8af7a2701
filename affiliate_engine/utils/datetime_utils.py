"""
Datetime utilities.

Provides timezone-aware datetime functions and settlement period math.
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from affiliate_engine.models.enums import SettlementPeriodType, VaultFrequency


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def period_bounds(
    period_type: SettlementPeriodType,
    reference: datetime | None = None,
) -> tuple[datetime, datetime]:
    """
    Get bounds of the last complete settlement period before reference.

    Weekly periods run Monday 00:00 to Monday 00:00 UTC, monthly periods
    cover the previous calendar month. Both are closed-open.

    Args:
        period_type: weekly or monthly
        reference: Point in time the period ends before (default: now)

    Returns:
        Tuple of (start, end)

    Raises:
        ValueError: For custom periods, which need explicit bounds
    """
    reference = ensure_utc(reference or utc_now())
    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)

    if period_type == SettlementPeriodType.WEEKLY:
        end = midnight - timedelta(days=midnight.weekday())
        return end - timedelta(days=7), end

    if period_type == SettlementPeriodType.MONTHLY:
        end = midnight.replace(day=1)
        start = (end - timedelta(days=1)).replace(day=1)
        return start, end

    raise ValueError("Custom periods require explicit start and end")


def next_distribution_at(
    frequency: VaultFrequency,
    day_of_week: int,
    hour: int,
    timezone: str,
    after: datetime | None = None,
) -> datetime:
    """
    Compute the next vault distribution time.

    Args:
        frequency: Distribution frequency
        day_of_week: Anchor weekday (0 = Sunday .. 6 = Saturday)
        hour: Anchor hour in the configured timezone
        timezone: IANA timezone name
        after: Reference time (default: now)

    Returns:
        Next distribution time in UTC, strictly after the reference
    """
    tz = ZoneInfo(timezone)
    local = ensure_utc(after or utc_now()).astimezone(tz)
    candidate = local.replace(hour=hour, minute=0, second=0, microsecond=0)

    if frequency == VaultFrequency.DAILY:
        if candidate <= local:
            candidate += timedelta(days=1)
        return candidate.astimezone(UTC)

    if frequency == VaultFrequency.MONTHLY:
        candidate = candidate.replace(day=1)
        if candidate <= local:
            year = candidate.year + candidate.month // 12
            month = candidate.month % 12 + 1
            candidate = candidate.replace(year=year, month=month)
        return candidate.astimezone(UTC)

    # Python weekday(): Monday = 0; anchor uses Sunday = 0
    target_weekday = (day_of_week - 1) % 7
    candidate += timedelta(days=(target_weekday - local.weekday()) % 7)
    if candidate <= local:
        candidate += timedelta(days=7)
    if frequency == VaultFrequency.BIWEEKLY:
        candidate += timedelta(days=7)
    return candidate.astimezone(UTC)
