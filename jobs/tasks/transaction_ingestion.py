"""
Transaction ingestion task.

Consumes processed transactions from the platform feed. Delivery is
at-least-once; duplicates are detected by external ID and acknowledged
without side effects.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import dramatiq
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.operational_constants import (
    DRAMATIQ_TIME_LIMIT_SHORT,
    INGESTION_MAX_RETRIES,
)
from affiliate_engine.services.configuration_provider import ConfigurationProvider
from affiliate_engine.services.transaction_ingestion import (
    IngestResult,
    TransactionIngestionService,
    TransactionPayload,
)
from jobs.async_runner import create_local_session, get_config_provider, run_async

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dramatiq.actor(
    max_retries=INGESTION_MAX_RETRIES,
    time_limit=DRAMATIQ_TIME_LIMIT_SHORT,
    throws=(ValidationError,),
)
def process_transaction(payload: dict[str, Any]) -> None:
    """
    Ingest one feed transaction.

    Malformed payloads are not retried; any other failure is.

    Args:
        payload: Transaction fields as sent by the feed
    """
    try:
        result = run_async(
            _process_transaction_async(TransactionPayload.model_validate(payload))
        )
    except ValidationError as e:
        logger.error(
            "Rejected malformed transaction payload",
            extra={"external_id": payload.get("external_id"), "error": str(e)},
        )
        raise
    except Exception as e:
        logger.exception(f"Transaction ingestion failed: {e}")
        raise  # For dramatiq retry

    if result.duplicate:
        logger.debug(
            "Duplicate delivery acknowledged",
            extra={"transaction_id": result.transaction_id},
        )


async def _process_transaction_async(
    payload: TransactionPayload,
    session_factory: SessionFactory = create_local_session,
    provider: ConfigurationProvider | None = None,
) -> IngestResult:
    """Async implementation of the ingestion task."""
    config = await (provider or get_config_provider()).get()
    async with session_factory() as session:
        service = TransactionIngestionService(session, config)
        return await service.ingest(payload)
