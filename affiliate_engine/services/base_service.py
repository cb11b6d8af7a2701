"""
Base service class.

Provides common functionality for all engine services: session management,
logging, the injected configuration snapshot and post-commit events.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.engine_config import EngineConfig
from affiliate_engine.services.events import EventBus, event_bus

# Type variable for generic decorator return types
T = TypeVar("T")

# Key in AsyncSession.info holding events queued until commit
PENDING_EVENTS_KEY = "pending_events"


class BaseService:
    """
    Base service class.

    Services sharing a session share one unit of work: events queued by any
    of them are published after the outermost @transaction commits and
    dropped on rollback.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: EngineConfig,
        bus: EventBus | None = None,
    ) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
            config: Engine configuration snapshot used for this call
            bus: Event bus (default: global bus)
        """
        self.session = session
        self.config = config
        self.event_bus = bus or event_bus
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()

    def queue_event(self, event_name: str, data: dict[str, Any]) -> None:
        """Queue an event to publish once the current transaction commits."""
        pending = self.session.info.setdefault(PENDING_EVENTS_KEY, [])
        pending.append((self.event_bus, event_name, data))

    def discard_events(self) -> None:
        """Drop events of a rolled back transaction."""
        self.session.info.pop(PENDING_EVENTS_KEY, None)

    async def publish_events(self) -> None:
        """Publish events queued in this session."""
        pending = self.session.info.pop(PENDING_EVENTS_KEY, [])
        for bus, event_name, data in pending:
            await bus.emit(event_name, data)


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to wrap method in transaction with automatic commit/rollback.

    Commits on success and publishes queued events, rolls back and drops
    them on exception.

    Usage:
        @transaction
        async def my_service_method(self, ...):
            # Your code here
            pass

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
        except Exception as e:
            await self.rollback()
            self.discard_events()
            self.logger.error(
                f"Transaction failed in {func.__name__}",
                extra={
                    "error": str(e),
                    "function": func.__name__,
                },
            )
            raise
        await self.publish_events()
        return result

    return wrapper
