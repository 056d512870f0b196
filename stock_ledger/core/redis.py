import redis.asyncio as redis
from stock_ledger.core.config import settings
import logging

logger = logging.getLogger(__name__)

class RedisClient:
    def __init__(self):
        self.redis = None

    @property
    def enabled(self) -> bool:
        return bool(settings.REDIS_URL)

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self.redis.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {str(e)}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis disconnected")

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message, returns the number of subscribers that received it"""
        if not self.redis:
            await self.connect()
        return await self.redis.publish(channel, message)

    async def pubsub(self):
        """Get a pub/sub handle on the shared connection pool"""
        if not self.redis:
            await self.connect()
        return self.redis.pubsub()

# Global Redis client instance
redis_client = RedisClient()
