"""
RevShare settlement task.

Settles a closed period: computes NGR per affiliate, distributes RevShare
up the sponsor chains and fills the period vault. The scheduler sends one
message per closed period of the configured cadence (weekly or monthly).
Re-running a settled period is a no-op.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.operational_constants import (
    DEFAULT_MAX_RETRIES,
    DRAMATIQ_TIME_LIMIT_LONG,
)
from affiliate_engine.models.enums import SettlementPeriodType
from affiliate_engine.services.configuration_provider import ConfigurationProvider
from affiliate_engine.services.revshare_settlement import (
    RevShareSettlementService,
    SettlementResult,
)
from jobs.async_runner import create_local_session, get_config_provider, run_async

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dramatiq.actor(max_retries=DEFAULT_MAX_RETRIES, time_limit=DRAMATIQ_TIME_LIMIT_LONG)
def settle_revshare_period(
    period_type: str | None = None,
    start_at: str | None = None,
    end_at: str | None = None,
) -> None:
    """
    Settle a RevShare period.

    Args:
        period_type: weekly, monthly or custom (default: configured cadence)
        start_at: ISO start of a custom period
        end_at: ISO end of a custom period
    """
    logger.info(
        "Starting RevShare settlement",
        extra={"period_type": period_type, "start_at": start_at, "end_at": end_at},
    )
    try:
        result = run_async(
            _settle_revshare_period_async(
                SettlementPeriodType(period_type) if period_type else None,
                datetime.fromisoformat(start_at) if start_at else None,
                datetime.fromisoformat(end_at) if end_at else None,
            )
        )
    except Exception as e:
        logger.exception(f"RevShare settlement failed: {e}")
        raise  # For dramatiq retry

    logger.info(
        "RevShare settlement task completed",
        extra={
            "period_id": result.period_id,
            "already_settled": result.already_settled,
            "overlapping_period_id": result.overlapping_period_id,
            "total_ngr": str(result.total_ngr),
            "total_distributed": str(result.total_distributed),
        },
    )


async def _settle_revshare_period_async(
    period_type: SettlementPeriodType | None = None,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
    reference: datetime | None = None,
    session_factory: SessionFactory = create_local_session,
    provider: ConfigurationProvider | None = None,
) -> SettlementResult:
    """Async implementation of the settlement task."""
    config = await (provider or get_config_provider()).get()
    period_type = period_type or config.revshare.period_type
    async with session_factory() as session:
        service = RevShareSettlementService(session, config)
        return await service.settle_period(
            period_type, start_at=start_at, end_at=end_at, reference=reference
        )
