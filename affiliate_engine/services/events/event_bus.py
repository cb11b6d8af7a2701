"""
In-process event bus.

Fire-and-forget facts announced by the engine. Delivery to external
systems is the subscribers' concern; a failing handler never affects the
engine operation that emitted the event.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger


class EngineEvents:
    """Event names emitted by the engine."""

    CPA_VALIDATION_COMPLETED = "cpa.validation.completed"
    COMMISSION_CREATED = "commission.created"
    CATEGORY_CHANGED = "category.changed"
    REVSHARE_SETTLED = "revshare.settled"
    AFFILIATE_REACTIVATED = "affiliate.reactivated"


class EventBus:
    """Subscribe/emit registry of event handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable]] = {}

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Subscribe handler to event."""
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Handler {handler.__name__} subscribed to {event_name}")

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        """Unsubscribe handler from event."""
        if handler in self._handlers.get(event_name, []):
            self._handlers[event_name].remove(handler)

    async def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit event to all subscribers."""
        for handler in list(self._handlers.get(event_name, [])):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(data)
                else:
                    handler(data)
            except Exception as e:
                logger.error(
                    f"Error in handler {handler.__name__} for event {event_name}",
                    extra={"event": event_name, "error": str(e)},
                )

    def clear(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()


# Global event bus instance
event_bus = EventBus()
