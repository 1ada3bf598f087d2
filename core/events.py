"""
Event bus for analytics recompute notifications.

Provides a simple publish/subscribe pattern that lets push-delivery channels
(the SSE stream) react to recompute completion without polling.

The bus is an ordinary object owned by the application: create one at startup
and hand it to the AnalyticsService and the stream manager. It keeps no
history, so a subscriber only ever sees events emitted after it subscribed.

Usage:
    from core.events import EventBus, AnalyticsEvent

    bus = EventBus()

    @bus.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
    async def handle_recompute(data: dict):
        print(f"{data['userId']} {data['period']} refreshed")

    await bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {"userId": "u1", ...})
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional, Sequence

from core.observability import get_correlation_id, get_logger

logger = get_logger(__name__)

# Type for event handlers
EventHandler = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]
EventTap = Callable[["Event"], Coroutine[Any, Any, None]]

# Identifies events produced by this process (used by the broker relay)
INSTANCE_ID = uuid.uuid4().hex[:12]


class AnalyticsEvent(Enum):
    """Events emitted by the analytics core."""

    RECOMPUTE_COMPLETED = "analytics.recompute_completed"
    BULK_RECOMPUTE_COMPLETED = "analytics.bulk_recompute_completed"


@dataclass
class EventMetadata:
    """Metadata attached to every event."""

    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)
    correlation_id: Optional[str] = field(default_factory=get_correlation_id)
    source: str = "analytics_service"
    instance_id: str = INSTANCE_ID


@dataclass
class Event:
    """Wrapper for event data with metadata."""

    type: AnalyticsEvent
    data: Dict[str, Any]
    metadata: EventMetadata = field(default_factory=EventMetadata)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for logging/serialization."""
        return {
            "event_type": self.type.value,
            "data": self.data,
            "metadata": {
                "event_id": self.metadata.event_id,
                "timestamp": self.metadata.timestamp.isoformat(),
                "correlation_id": self.metadata.correlation_id,
                "source": self.metadata.source,
                "instance_id": self.metadata.instance_id,
            },
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Event":
        meta = payload.get("metadata") or {}
        return cls(
            type=AnalyticsEvent(payload["event_type"]),
            data=payload.get("data") or {},
            metadata=EventMetadata(
                event_id=meta.get("event_id") or uuid.uuid4().hex,
                timestamp=datetime.fromisoformat(meta["timestamp"]) if meta.get("timestamp") else datetime.now(),
                correlation_id=meta.get("correlation_id"),
                source=meta.get("source", "broker"),
                instance_id=meta.get("instance_id", ""),
            ),
        )


class EventBus:
    """
    Async in-process event bus.

    Features:
    - Async event handlers
    - Multiple handlers per event
    - Wildcard subscriptions (subscribe to all events)
    - Error isolation (one handler failure doesn't affect others)
    """

    def __init__(self):
        self._handlers: Dict[AnalyticsEvent, List[EventHandler]] = {}
        self._wildcard_handlers: List[EventHandler] = []
        self._taps: List[EventTap] = []
        self._emitted = 0

    def on(
        self, event_type: Optional[AnalyticsEvent] = None
    ) -> Callable[[EventHandler], EventHandler]:
        """
        Decorator to register an event handler.

        Args:
            event_type: Event type to subscribe to, or None for all events
        """

        def decorator(handler: EventHandler) -> EventHandler:
            self.subscribe(event_type, handler)
            return handler

        return decorator

    def subscribe(
        self, event_type: Optional[AnalyticsEvent], handler: EventHandler
    ) -> None:
        """
        Programmatically subscribe to an event.

        Args:
            event_type: Event type to subscribe to, or None for all events
            handler: Async function to handle the event
        """
        if event_type is None:
            self._wildcard_handlers.append(handler)
        else:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            f"Registered handler {getattr(handler, '__name__', handler)} for "
            f"{event_type.value if event_type else '*'}"
        )

    def unsubscribe(
        self, event_type: Optional[AnalyticsEvent], handler: EventHandler
    ) -> bool:
        """
        Unsubscribe a handler from an event.

        Returns:
            True if handler was found and removed
        """
        if event_type is None:
            if handler in self._wildcard_handlers:
                self._wildcard_handlers.remove(handler)
                return True
        else:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._handlers[event_type]
                return True
        return False

    async def emit(
        self,
        event_type: AnalyticsEvent,
        data: Optional[Dict[str, Any]] = None,
        source: str = "analytics_service",
    ) -> Event:
        """
        Emit an event to all subscribed handlers.

        Returns:
            The emitted Event object
        """
        event = Event(
            type=event_type,
            data=data or {},
            metadata=EventMetadata(source=source),
        )
        await self.dispatch(event)
        return event

    async def dispatch(self, event: Event) -> None:
        """Deliver an already-built event (local or relayed) to handlers."""
        self._emitted += 1

        handlers = list(self._handlers.get(event.type, []))
        handlers.extend(self._wildcard_handlers)
        taps = list(self._taps)

        if not handlers and not taps:
            logger.debug(f"No handlers for event {event.type.value}")
            return

        logger.debug(
            f"Emitting {event.type.value} to {len(handlers)} handlers",
            extra={"event": event.to_dict()},
        )

        # Execute handlers concurrently with error isolation
        calls = [self._call(handler, event) for handler in handlers]
        calls.extend(self._tap(tap, event) for tap in taps)
        results = await asyncio.gather(*calls, return_exceptions=True)

        for handler, result in zip(handlers + taps, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Handler {getattr(handler, '__name__', handler)} failed "
                    f"for {event.type.value}: {result}",
                    extra={"event": event.to_dict()},
                )

    async def _call(self, handler: EventHandler, event: Event) -> None:
        await handler(event.data)

    async def _tap(self, tap: "EventTap", event: Event) -> None:
        await tap(event)

    def add_tap(self, tap: "EventTap") -> None:
        """Register a listener that receives every full Event (data + metadata)."""
        self._taps.append(tap)

    def remove_tap(self, tap: "EventTap") -> bool:
        if tap in self._taps:
            self._taps.remove(tap)
            return True
        return False

    def get_handlers(self, event_type: Optional[AnalyticsEvent] = None) -> Dict[str, int]:
        """
        Get count of registered handlers.

        Returns:
            Dict mapping event type to handler count
        """
        if event_type:
            return {event_type.value: len(self._handlers.get(event_type, []))}

        result = {et.value: len(handlers) for et, handlers in self._handlers.items()}
        result["*"] = len(self._wildcard_handlers)
        return result

    @property
    def emitted_count(self) -> int:
        return self._emitted

    def clear_handlers(self) -> None:
        """Remove all handlers (useful for testing)."""
        self._handlers.clear()
        self._wildcard_handlers.clear()
        self._taps.clear()


# ═══════════════════════════════════════════════════════════════════════════════
# CONVENIENCE FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════════


async def emit_recompute_completed(
    bus: EventBus, user_id: str, period: str, last_updated: datetime
) -> Event:
    """Emit single-period recompute completion."""
    return await bus.emit(
        AnalyticsEvent.RECOMPUTE_COMPLETED,
        {
            "userId": str(user_id),
            "period": period,
            "lastUpdated": last_updated.isoformat(),
        },
    )


async def emit_bulk_recompute_completed(
    bus: EventBus, user_id: str, periods: Sequence[str], last_updated: datetime
) -> Event:
    """Emit multi-period recompute completion."""
    return await bus.emit(
        AnalyticsEvent.BULK_RECOMPUTE_COMPLETED,
        {
            "userId": str(user_id),
            "periods": list(periods),
            "lastUpdated": last_updated.isoformat(),
        },
    )
