"""
Configuration provider.

Loads engine configuration snapshots from a source, caches the current one
and swaps it atomically on reload. Readers always get one complete
snapshot, never a mix of two versions.
"""

import asyncio
import json
import time
from collections.abc import Mapping
from typing import Any, Protocol

import redis.asyncio as redis
from loguru import logger

from affiliate_engine.config.engine_config import EngineConfig, default_config_document
from affiliate_engine.config.settings import settings
from affiliate_engine.utils.exceptions import ConfigurationError
from affiliate_engine.utils.redis_utils import get_redis_client


class ConfigSource(Protocol):
    """Source of raw configuration documents."""

    async def load(self) -> Mapping[str, Any]:
        ...


class DefaultConfigSource:
    """Built-in tables."""

    async def load(self) -> Mapping[str, Any]:
        return default_config_document()


class RedisConfigSource:
    """
    JSON configuration document stored in Redis.

    Top-level sections present in the document replace the built-in ones;
    a missing key falls back to the built-in tables. Without an explicit
    client a new connection is opened for every load, so the source can be
    shared by workers that run each message in its own event loop.
    """

    def __init__(
        self, client: redis.Redis | None = None, key: str | None = None
    ) -> None:
        self.client = client
        self.key = key or settings.engine_config_redis_key

    async def _get_raw(self) -> str | None:
        if self.client is not None:
            return await self.client.get(self.key)
        client = get_redis_client()
        try:
            return await client.get(self.key)
        finally:
            await client.aclose()

    async def load(self) -> Mapping[str, Any]:
        raw = await self._get_raw()
        document = default_config_document()
        if raw is None:
            logger.info(
                "No engine configuration stored, using built-in tables",
                extra={"key": self.key},
            )
            return document

        try:
            stored = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Engine configuration at {self.key} is not valid JSON"
            ) from e
        if not isinstance(stored, dict):
            raise ConfigurationError(
                f"Engine configuration at {self.key} must be a JSON object"
            )

        document.update(stored)
        return document

    async def store(self, document: Mapping[str, Any]) -> EngineConfig:
        """
        Validate and publish a configuration document.

        Raises:
            ConfigurationError: If the document does not build a valid snapshot
        """
        merged = default_config_document()
        merged.update(document)
        config = EngineConfig.build(merged)
        payload = json.dumps(dict(document), default=str)
        if self.client is not None:
            await self.client.set(self.key, payload)
            return config
        client = get_redis_client()
        try:
            await client.set(self.key, payload)
        finally:
            await client.aclose()
        return config


class ConfigurationProvider:
    """
    Cached access to the current engine configuration.

    Example:
        provider = ConfigurationProvider(RedisConfigSource(client))
        config = await provider.get()
    """

    def __init__(
        self,
        source: ConfigSource | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self.source = source or DefaultConfigSource()
        self.ttl_seconds = (
            settings.engine_config_cache_ttl_seconds
            if ttl_seconds is None
            else ttl_seconds
        )
        self._snapshot: EngineConfig | None = None
        self._loaded_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> EngineConfig:
        """Last loaded snapshot."""
        if self._snapshot is None:
            raise ConfigurationError("Engine configuration has not been loaded")
        return self._snapshot

    def _is_fresh(self) -> bool:
        if self._snapshot is None or self._loaded_at is None:
            return False
        if self.ttl_seconds == 0:
            return True
        return time.monotonic() - self._loaded_at < self.ttl_seconds

    async def get(self) -> EngineConfig:
        """Get the current snapshot, reloading it when stale or invalidated."""
        if self._is_fresh():
            return self._snapshot
        async with self._lock:
            if self._is_fresh():
                return self._snapshot
            return await self._reload_locked()

    async def reload(self) -> EngineConfig:
        """
        Force a reload from the source.

        A failed reload leaves the previous snapshot in place.

        Raises:
            ConfigurationError: If the source document is missing or malformed
        """
        async with self._lock:
            return await self._reload_locked()

    async def _reload_locked(self) -> EngineConfig:
        document = await self.source.load()
        snapshot = EngineConfig.build(document)

        previous = self._snapshot.version if self._snapshot else None
        self._snapshot = snapshot
        self._loaded_at = time.monotonic()

        if previous != snapshot.version:
            logger.info(
                "Engine configuration loaded",
                extra={"version": snapshot.version, "previous_version": previous},
            )
        return snapshot

    def invalidate(self) -> None:
        """Mark the cached snapshot stale; the next get() reloads it."""
        self._loaded_at = None
