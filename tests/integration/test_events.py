"""
Integration tests for core/events.py

Tests the event-driven publish/subscribe system.
"""
import pytest
from datetime import datetime
from typing import Any, Dict, List

from core.events import (
    INSTANCE_ID,
    AnalyticsEvent,
    Event,
    EventBus,
    EventMetadata,
    emit_bulk_recompute_completed,
    emit_recompute_completed,
)
from core.observability import correlation_context


class TestEventBus:
    """Tests for EventBus class."""

    def setup_method(self):
        """Create fresh event bus for each test."""
        self.bus = EventBus()

    @pytest.mark.asyncio
    async def test_emit_with_no_handlers(self):
        """Emitting event with no handlers succeeds silently."""
        event = await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {"userId": "u1"})
        assert event.type == AnalyticsEvent.RECOMPUTE_COMPLETED
        assert event.data["userId"] == "u1"
        assert self.bus.emitted_count == 1

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self):
        """Subscribed handler receives events."""
        received: List[Dict[str, Any]] = []

        @self.bus.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
        async def handler(data: dict):
            received.append(data)

        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {"period": "7days"})

        assert received == [{"period": "7days"}]

    @pytest.mark.asyncio
    async def test_handlers_only_receive_their_event(self):
        received = []

        @self.bus.on(AnalyticsEvent.BULK_RECOMPUTE_COMPLETED)
        async def handler(data: dict):
            received.append(data)

        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {})
        assert received == []

    @pytest.mark.asyncio
    async def test_wildcard_handler(self):
        """Wildcard handler receives all events."""
        received = []

        @self.bus.on()
        async def handler(data: dict):
            received.append(data)

        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {"n": 1})
        await self.bus.emit(AnalyticsEvent.BULK_RECOMPUTE_COMPLETED, {"n": 2})

        assert [d["n"] for d in received] == [1, 2]

    @pytest.mark.asyncio
    async def test_handler_error_isolation(self):
        """One handler failure doesn't affect others."""
        results = []

        @self.bus.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
        async def failing(data: dict):
            raise ValueError("Intentional error")

        @self.bus.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
        async def working(data: dict):
            results.append("ok")

        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {})

        assert results == ["ok"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        received = []

        async def handler(data: dict):
            received.append(data)

        self.bus.subscribe(AnalyticsEvent.RECOMPUTE_COMPLETED, handler)
        assert self.bus.unsubscribe(AnalyticsEvent.RECOMPUTE_COMPLETED, handler)
        assert not self.bus.unsubscribe(AnalyticsEvent.RECOMPUTE_COMPLETED, handler)

        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {})
        assert received == []
        assert self.bus.get_handlers(AnalyticsEvent.RECOMPUTE_COMPLETED) == {
            AnalyticsEvent.RECOMPUTE_COMPLETED.value: 0
        }

    @pytest.mark.asyncio
    async def test_no_replay_for_late_subscribers(self):
        received = []
        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {"early": True})

        @self.bus.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
        async def handler(data: dict):
            received.append(data)

        assert received == []

    @pytest.mark.asyncio
    async def test_tap_receives_full_event(self):
        events: List[Event] = []

        async def tap(event: Event):
            events.append(event)

        self.bus.add_tap(tap)
        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {"userId": "u1"})

        assert len(events) == 1
        assert events[0].metadata.instance_id == INSTANCE_ID

        assert self.bus.remove_tap(tap)
        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {})
        assert len(events) == 1

    @pytest.mark.asyncio
    async def test_buses_are_independent(self):
        other = EventBus()
        received = []

        @other.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
        async def handler(data: dict):
            received.append(data)

        await self.bus.emit(AnalyticsEvent.RECOMPUTE_COMPLETED, {})
        assert received == []

    def test_get_handlers(self):
        async def handler(data: dict):
            pass

        self.bus.subscribe(AnalyticsEvent.RECOMPUTE_COMPLETED, handler)
        self.bus.subscribe(None, handler)

        counts = self.bus.get_handlers()
        assert counts[AnalyticsEvent.RECOMPUTE_COMPLETED.value] == 1
        assert counts["*"] == 1

        self.bus.clear_handlers()
        assert self.bus.get_handlers() == {"*": 0}


class TestEvent:
    """Tests for Event serialization."""

    def test_metadata_carries_correlation_id(self):
        with correlation_context("req-42"):
            event = Event(type=AnalyticsEvent.RECOMPUTE_COMPLETED, data={})
        assert event.metadata.correlation_id == "req-42"

    def test_dict_round_trip(self):
        event = Event(
            type=AnalyticsEvent.BULK_RECOMPUTE_COMPLETED,
            data={"userId": "u1", "periods": ["7days"]},
            metadata=EventMetadata(timestamp=datetime(2025, 1, 2, 3, 4, 5), instance_id="abc"),
        )
        restored = Event.from_dict(event.to_dict())

        assert restored.type == event.type
        assert restored.data == event.data
        assert restored.metadata.timestamp == event.metadata.timestamp
        assert restored.metadata.instance_id == "abc"

    def test_from_dict_unknown_type(self):
        with pytest.raises(ValueError):
            Event.from_dict({"event_type": "sync.started", "data": {}})


class TestConvenienceFunctions:
    """Tests for emit helpers."""

    def setup_method(self):
        self.bus = EventBus()

    @pytest.mark.asyncio
    async def test_emit_recompute_completed(self):
        received = []

        @self.bus.on(AnalyticsEvent.RECOMPUTE_COMPLETED)
        async def handler(data: dict):
            received.append(data)

        ts = datetime(2025, 5, 1, 10, 0)
        await emit_recompute_completed(self.bus, "user-1", "30days", ts)

        assert received == [{"userId": "user-1", "period": "30days", "lastUpdated": "2025-05-01T10:00:00"}]

    @pytest.mark.asyncio
    async def test_emit_bulk_recompute_completed(self):
        received = []

        @self.bus.on(AnalyticsEvent.BULK_RECOMPUTE_COMPLETED)
        async def handler(data: dict):
            received.append(data)

        await emit_bulk_recompute_completed(self.bus, "user-1", ("7days", "30days"), datetime(2025, 5, 1))

        assert received[0]["periods"] == ["7days", "30days"]
