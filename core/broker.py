"""
Redis pub/sub relay for analytics events.

The in-process EventBus only reaches stream clients connected to the same
worker. When several workers serve the API, RedisEventBridge forwards every
locally emitted event to a Redis channel and re-dispatches events published
by other workers on the local bus.

Events carry the emitting worker's instance id so a worker never re-dispatches
its own events.

Usage:
    bridge = RedisEventBridge(bus, config.broker.url, config.broker.channel)
    await bridge.start()
    ...
    await bridge.stop()
"""
import asyncio
import json
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from core.events import INSTANCE_ID, Event, EventBus
from core.observability import get_logger

logger = get_logger(__name__)


@dataclass
class BridgeStats:
    """Relay statistics for monitoring."""

    published: int = 0
    relayed: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {"published": self.published, "relayed": self.relayed, "errors": self.errors}


class RedisEventBridge:
    """Two-way relay between a local EventBus and a Redis channel."""

    def __init__(
        self,
        bus: EventBus,
        url: str,
        channel: str,
        client: Optional[redis.Redis] = None,
        instance_id: str = INSTANCE_ID,
    ):
        self.bus = bus
        self.url = url
        self.channel = channel
        self.instance_id = instance_id
        self._client = client
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None
        self._stats = BridgeStats()

    @property
    def is_running(self) -> bool:
        return self._listener is not None and not self._listener.done()

    @property
    def stats(self) -> BridgeStats:
        return self._stats

    async def start(self) -> None:
        """Connect, subscribe to the channel and begin relaying."""
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5.0,
            )
        await self._client.ping()

        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.channel)

        self.bus.add_tap(self.publish)
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Event bridge started on {self.channel}", extra={"instance_id": self.instance_id})

    async def stop(self) -> None:
        self.bus.remove_tap(self.publish)

        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
            self._pubsub = None

        if self._client is not None:
            await self._client.aclose()
            self._client = None

        logger.info("Event bridge stopped")

    async def publish(self, event: Event) -> None:
        """Bus tap: forward events that originated in this worker."""
        if event.metadata.instance_id != self.instance_id:
            return
        try:
            await self._client.publish(self.channel, json.dumps(event.to_dict(), default=str))
            self._stats.published += 1
        except redis.RedisError as e:
            self._stats.errors += 1
            logger.warning(f"Event publish failed: {e}")

    async def handle_message(self, raw: str) -> bool:
        """
        Re-dispatch one message from the channel on the local bus.

        Returns:
            True if the event came from another worker and was dispatched
        """
        try:
            event = Event.from_dict(json.loads(raw))
        except (ValueError, KeyError) as e:
            self._stats.errors += 1
            logger.warning(f"Discarding malformed event message: {e}")
            return False

        if event.metadata.instance_id == self.instance_id:
            return False

        await self.bus.dispatch(event)
        self._stats.relayed += 1
        return True

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                await self.handle_message(message["data"])
        except redis.RedisError as e:
            self._stats.errors += 1
            logger.error(f"Event bridge listener stopped: {e}")
