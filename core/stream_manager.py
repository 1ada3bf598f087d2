"""
Server-sent event streams for live dashboard updates.

Each dashboard client holds one long-lived stream for a (user, period).
On open the stream receives a ``snapshot`` event, then an ``update`` event
whenever a recompute completion for its user and period is announced on the
event bus. Closing a stream unregisters its bus listeners.

Frames are sse-starlette event dicts (``{"event": ..., "data": ...}``);
EventSourceResponse handles wire encoding, keep-alive pings and client
disconnects.

Usage:
    manager = StreamManager(service, bus)

    stream = await manager.open(user_id, "30days")
    try:
        async for frame in manager.frames(stream):
            yield frame
    finally:
        await manager.close(stream)
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from core.config import config
from core.events import AnalyticsEvent, EventBus, EventHandler
from core.models import utcnow

logger = logging.getLogger(__name__)


class StreamEvent(Enum):
    """Event names sent on an analytics stream."""

    SNAPSHOT = "snapshot"
    UPDATE = "update"
    ERROR = "error"


def sse_frame(event: StreamEvent, data: Dict[str, Any]) -> Dict[str, str]:
    """One event in the shape EventSourceResponse consumes."""
    return {"event": event.value, "data": json.dumps(data, default=str)}


@dataclass
class StreamInfo:
    """Information about one open stream."""

    id: int
    user_id: str
    period: str
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    connected_at: datetime = field(default_factory=datetime.now)
    message_count: int = 0
    closed: bool = False
    on_update: Optional[EventHandler] = None
    on_bulk_update: Optional[EventHandler] = None


class StreamManager:
    """
    Manages open analytics streams.

    Features:
    - Per-(user, period) filtering of bus events
    - Immediate snapshot on open
    - Listener cleanup on close
    - Connection statistics
    """

    def __init__(self, service, bus: EventBus, keepalive_seconds: float = None):
        self.service = service
        self.bus = bus
        # Ping interval handed to EventSourceResponse
        self.keepalive_seconds = keepalive_seconds or config.stream.keepalive_seconds
        self._streams: Dict[int, StreamInfo] = {}
        self._lock = asyncio.Lock()
        self._next_stream_id = 1
        self._total_streams = 0
        self._total_messages_sent = 0

    async def open(self, user_id: str, period: str) -> StreamInfo:
        """Register a stream, queue its initial snapshot and subscribe it to the bus."""
        async with self._lock:
            stream = StreamInfo(id=self._next_stream_id, user_id=str(user_id), period=period)
            self._next_stream_id += 1
            self._streams[stream.id] = stream
            self._total_streams += 1

        logger.info(
            f"Analytics stream opened for {stream.user_id}/{period} "
            f"(active: {self.active_count})"
        )

        try:
            await self._send_initial(stream)
        except BaseException:
            # Cancelled while loading the snapshot; nothing is subscribed yet
            stream.closed = True
            self._streams.pop(stream.id, None)
            raise

        async def on_update(data: Dict[str, Any]) -> None:
            if data.get("userId") != stream.user_id:
                return
            if (data.get("period") or stream.period) == stream.period:
                await self._refresh(stream)

        async def on_bulk_update(data: Dict[str, Any]) -> None:
            if data.get("userId") != stream.user_id:
                return
            if stream.period in (data.get("periods") or []):
                await self._refresh(stream)

        stream.on_update = on_update
        stream.on_bulk_update = on_bulk_update
        self.bus.subscribe(AnalyticsEvent.RECOMPUTE_COMPLETED, on_update)
        self.bus.subscribe(AnalyticsEvent.BULK_RECOMPUTE_COMPLETED, on_bulk_update)
        return stream

    async def _send_initial(self, stream: StreamInfo) -> None:
        try:
            snapshot = await self.service.get_analytics(stream.user_id, stream.period)
            self._send(stream, StreamEvent.SNAPSHOT, {"period": stream.period, "analytics": snapshot.to_dict()})
        except Exception as e:
            logger.error(f"Initial analytics snapshot failed: {e}")
            self._send(stream, StreamEvent.ERROR, {"message": "Failed to load initial analytics snapshot"})

    async def close(self, stream: StreamInfo) -> None:
        """Unregister listeners and forget the stream. Safe to call twice."""
        if stream.on_update:
            self.bus.unsubscribe(AnalyticsEvent.RECOMPUTE_COMPLETED, stream.on_update)
        if stream.on_bulk_update:
            self.bus.unsubscribe(AnalyticsEvent.BULK_RECOMPUTE_COMPLETED, stream.on_bulk_update)
        if not stream.closed:
            stream.closed = True
            stream.queue.put_nowait(None)  # wakes frames()

        async with self._lock:
            self._streams.pop(stream.id, None)

        logger.info(
            f"Analytics stream closed for {stream.user_id}/{stream.period} "
            f"(remaining: {self.active_count})"
        )

    async def _refresh(self, stream: StreamInfo) -> None:
        if stream.closed:
            return
        try:
            fresh = await self.service.get_latest_analytics(stream.user_id, stream.period)
            self._send(stream, StreamEvent.UPDATE, {
                "period": stream.period,
                "analytics": fresh.to_dict(),
                "lastUpdated": utcnow().isoformat(),
            })
        except Exception as e:
            logger.error(f"Analytics stream refresh failed: {e}")
            self._send(stream, StreamEvent.ERROR, {"message": "Failed to refresh analytics"})

    def _send(self, stream: StreamInfo, event: StreamEvent, data: Dict[str, Any]) -> None:
        if stream.closed:
            return
        stream.queue.put_nowait(sse_frame(event, data))
        stream.message_count += 1
        self._total_messages_sent += 1

    async def frames(self, stream: StreamInfo) -> AsyncIterator[Dict[str, str]]:
        """Yield queued frames until the stream is closed."""
        while True:
            frame = await stream.queue.get()
            if frame is None:
                return
            yield frame

    @property
    def active_count(self) -> int:
        return len(self._streams)

    def stream_count(self, user_id: str) -> int:
        return sum(1 for s in self._streams.values() if s.user_id == str(user_id))

    def get_stats(self) -> Dict[str, Any]:
        """Get stream statistics for monitoring."""
        periods: Dict[str, int] = {}
        for s in self._streams.values():
            periods[s.period] = periods.get(s.period, 0) + 1
        return {
            "active_streams": self.active_count,
            "total_streams": self._total_streams,
            "total_messages_sent": self._total_messages_sent,
            "streams_by_period": periods,
        }
