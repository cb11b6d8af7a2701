"""Engine events."""

from affiliate_engine.services.events.event_bus import EngineEvents, EventBus, event_bus

__all__ = ["EngineEvents", "EventBus", "event_bus"]
