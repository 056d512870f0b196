import asyncio
import json
import logging
from typing import Any, Dict, List, Protocol
from stock_ledger.core.config import settings
from stock_ledger.core.redis import RedisClient, redis_client

logger = logging.getLogger(__name__)


class StockUpdatePublisher(Protocol):
    async def publish(self, event: Dict[str, Any]) -> None: ...


class StockUpdateBroadcaster:
    """Real-time fan-out of stock level changes to WebSocket clients"""

    def __init__(self, channel: str = None, redis: RedisClient = None):
        self.channel = channel or settings.STOCK_UPDATES_CHANNEL
        self.redis = redis
        # In-memory storage for WebSocket connections of this worker
        self._connections: List[Any] = []
        self.relayed_count = 0

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def add_connection(self, websocket):
        """Add WebSocket connection"""
        if websocket not in self._connections:
            self._connections.append(websocket)

    def remove_connection(self, websocket):
        """Remove WebSocket connection"""
        if websocket in self._connections:
            self._connections.remove(websocket)

    async def publish(self, event: Dict[str, Any]) -> None:
        """Publish a stock update; goes through Redis when it is configured"""
        if self.redis is not None and self.redis.enabled:
            await self.redis.publish(self.channel, json.dumps(event))
        else:
            await self.fan_out(event)

    async def fan_out(self, event: Dict[str, Any]) -> int:
        """Send an event to every local connection, returns how many got it"""
        frame = json.dumps({"event": self.channel, "data": event})
        delivered = 0

        for websocket in list(self._connections):
            try:
                await websocket.send_text(frame)
                delivered += 1
            except Exception as e:
                # Remove disconnected websocket
                logger.info(f"Dropping stock update connection after send failure: {e}")
                self.remove_connection(websocket)

        return delivered

    async def relay_from_redis(self, retry_delay: float = 1.0, max_retry_delay: float = 30.0):
        """Forward stock updates published by any worker to this worker's sockets.

        Runs until cancelled. A lost Redis connection is logged and the
        subscription is re-established with exponential backoff; the backoff
        resets once a subscription has relayed something.
        """
        delay = retry_delay
        while True:
            relayed_before = self.relayed_count
            try:
                await self._relay_subscription()
                logger.warning(f"Redis subscription to '{self.channel}' ended, resubscribing")
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Stock update relay lost Redis, retrying in {delay:.1f}s")

            if self.relayed_count > relayed_before:
                delay = retry_delay
            await asyncio.sleep(delay)
            delay = min(delay * 2, max_retry_delay)

    async def _relay_subscription(self):
        pubsub = await self.redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            logger.info(f"Relaying '{self.channel}' from Redis")
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring malformed stock update: {message.get('data')!r}")
                    continue
                await self.fan_out(event)
                self.relayed_count += 1
        finally:
            try:
                await pubsub.aclose()
            except Exception as e:
                logger.info(f"Closing Redis subscription failed: {e}")


# Global broadcaster shared by the HTTP and WebSocket routes
stock_broadcaster = StockUpdateBroadcaster(redis=redis_client)
