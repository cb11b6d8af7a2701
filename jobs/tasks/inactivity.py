"""
Inactivity sweep task.

Applies weekly RevShare reductions to affiliates without activity past
the grace period and lifts them for affiliates that met the reactivation
requirement. Runs daily via scheduler; reductions only change once a
full week has passed, so extra runs are harmless.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.operational_constants import (
    DEFAULT_MAX_RETRIES,
    DRAMATIQ_TIME_LIMIT_STANDARD,
)
from affiliate_engine.services.configuration_provider import ConfigurationProvider
from affiliate_engine.services.inactivity_tracker import (
    InactivityRunResult,
    InactivityTracker,
)
from jobs.async_runner import create_local_session, get_config_provider, run_async

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dramatiq.actor(max_retries=DEFAULT_MAX_RETRIES, time_limit=DRAMATIQ_TIME_LIMIT_STANDARD)
def apply_inactivity_reductions() -> None:
    """Run the inactivity tracker over all affiliates."""
    logger.info("Starting inactivity sweep...")
    try:
        result = run_async(_apply_inactivity_reductions_async())
    except Exception as e:
        logger.exception(f"Inactivity sweep failed: {e}")
        raise  # For dramatiq retry

    logger.info(
        "Inactivity sweep completed",
        extra={
            "checked": result.checked,
            "reduced": len(result.reduced),
            "reactivated": len(result.reactivated),
        },
    )


async def _apply_inactivity_reductions_async(
    now: datetime | None = None,
    session_factory: SessionFactory = create_local_session,
    provider: ConfigurationProvider | None = None,
) -> InactivityRunResult:
    """Async implementation of the inactivity sweep."""
    config = await (provider or get_config_provider()).get()
    async with session_factory() as session:
        tracker = InactivityTracker(session, config)
        return await tracker.apply_reductions(now)
