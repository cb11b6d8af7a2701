"""
Engine configuration reload task.

Optionally publishes a new configuration document, then reloads the
snapshot of the worker running the task. Other workers pick the new
document up when their cached snapshot expires; calls already running
keep the snapshot they started with.
"""

from typing import Any

import dramatiq
from loguru import logger

from affiliate_engine.config.engine_config import EngineConfig
from affiliate_engine.config.operational_constants import DRAMATIQ_TIME_LIMIT_SHORT
from affiliate_engine.services.configuration_provider import (
    ConfigurationProvider,
    RedisConfigSource,
)
from affiliate_engine.utils.exceptions import ConfigurationError
from jobs.async_runner import get_config_provider, run_async


@dramatiq.actor(
    max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT_SHORT, throws=(ConfigurationError,)
)
def reload_engine_config(document: dict[str, Any] | None = None) -> None:
    """
    Reload the engine configuration.

    An invalid document is rejected and the stored one stays in place.

    Args:
        document: Configuration sections to publish first (optional)
    """
    try:
        config = run_async(_reload_engine_config_async(document))
    except ConfigurationError as e:
        logger.error(
            "Engine configuration rejected",
            extra={"version": (document or {}).get("version"), "error": str(e)},
        )
        raise

    logger.info("Engine configuration reloaded", extra={"version": config.version})


async def _reload_engine_config_async(
    document: dict[str, Any] | None = None,
    source: RedisConfigSource | None = None,
    provider: ConfigurationProvider | None = None,
) -> EngineConfig:
    """Async implementation of the reload task."""
    if document is not None:
        await (source or RedisConfigSource()).store(document)

    provider = provider or get_config_provider()
    provider.invalidate()
    return await provider.reload()
