"""
Periodic job scheduler.

Enqueues the engine's periodic dramatiq jobs on a cron schedule. The
scheduler only sends messages; settlement and the inactivity sweep run
in the dramatiq workers. RevShare is settled on the single cadence of
the configuration snapshot: every Monday for weekly periods, on the
first day of the month for monthly ones.

Usage:
    python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

import jobs.broker  # noqa: F401
from affiliate_engine.config.engine_config import EngineConfig
from affiliate_engine.config.logging_config import setup_logging
from affiliate_engine.config.operational_constants import (
    INACTIVITY_SWEEP_HOUR,
    INACTIVITY_SWEEP_MINUTE,
    MONTHLY_SETTLEMENT_HOUR,
    MONTHLY_SETTLEMENT_MINUTE,
    SCHEDULER_MISFIRE_GRACE_TIME,
    WEEKLY_SETTLEMENT_DAY_OF_WEEK,
    WEEKLY_SETTLEMENT_HOUR,
    WEEKLY_SETTLEMENT_MINUTE,
)
from affiliate_engine.models.enums import SettlementPeriodType
from jobs.async_runner import get_config_provider
from jobs.tasks.inactivity import apply_inactivity_reductions
from jobs.tasks.revshare_settlement import settle_revshare_period


def enqueue_settlement(period_type: str) -> None:
    """Send a settlement message for the period that just closed."""
    message = settle_revshare_period.send(period_type)
    logger.info(
        "RevShare settlement enqueued",
        extra={"period_type": period_type, "message_id": message.message_id},
    )


def enqueue_inactivity_sweep() -> None:
    """Send an inactivity sweep message."""
    message = apply_inactivity_reductions.send()
    logger.info(
        "Inactivity sweep enqueued",
        extra={"message_id": message.message_id},
    )


def settlement_trigger(period_type: SettlementPeriodType) -> CronTrigger:
    """Cron trigger firing right after a period of this type closes."""
    if period_type == SettlementPeriodType.WEEKLY:
        return CronTrigger(
            day_of_week=WEEKLY_SETTLEMENT_DAY_OF_WEEK,
            hour=WEEKLY_SETTLEMENT_HOUR,
            minute=WEEKLY_SETTLEMENT_MINUTE,
            timezone="UTC",
        )
    if period_type == SettlementPeriodType.MONTHLY:
        return CronTrigger(
            day=1,
            hour=MONTHLY_SETTLEMENT_HOUR,
            minute=MONTHLY_SETTLEMENT_MINUTE,
            timezone="UTC",
        )
    raise ValueError(f"Period type {period_type} cannot be scheduled")


def create_scheduler(config: EngineConfig) -> AsyncIOScheduler:
    """
    Build the scheduler with all periodic jobs registered.

    Args:
        config: Snapshot whose RevShare period type sets the cadence

    Returns:
        AsyncIOScheduler (not started)
    """
    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": SCHEDULER_MISFIRE_GRACE_TIME,
        },
    )

    period_type = config.revshare.period_type
    scheduler.add_job(
        enqueue_settlement,
        settlement_trigger(period_type),
        args=[period_type.value],
        id="revshare_settlement",
        name=f"RevShare {period_type.value} settlement",
        replace_existing=True,
    )

    scheduler.add_job(
        enqueue_inactivity_sweep,
        CronTrigger(
            hour=INACTIVITY_SWEEP_HOUR,
            minute=INACTIVITY_SWEEP_MINUTE,
            timezone="UTC",
        ),
        id="inactivity_sweep",
        name="Inactivity sweep",
        replace_existing=True,
    )

    return scheduler


async def main() -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    setup_logging()
    config = await get_config_provider().get()
    scheduler = create_scheduler(config)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")

    await stop.wait()
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")


if __name__ == "__main__":
    asyncio.run(main())
