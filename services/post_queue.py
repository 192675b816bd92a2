"""
Redis-backed queue of scheduled post ids.

Post ids live in a sorted set scored by their publish timestamp so due posts
can be fetched with one range query. The database stays the source of truth:
when Redis is unreachable every operation is a no-op and the publisher keeps
polling the database.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import redis.asyncio as redis

from infrastructure.config import settings

logger = logging.getLogger(__name__)


class PostQueueManager:
    """Sorted-set queue of scheduled post ids, keyed by publish time."""

    QUEUE_KEY = "quizforge:scheduled_posts"

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = settings.redis_url if redis_url is None else redis_url
        self.redis: Optional[redis.Redis] = None
        self._connected = False

    async def connect(self) -> bool:
        """Connect and ping Redis. Returns False (and stays disabled) on failure."""
        if not self.redis_url:
            logger.info("REDIS_URL not set, post queue disabled")
            return False

        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            await self.redis.ping()
            self._connected = True
            logger.info("Redis connection established for post queue")
        except Exception as e:
            logger.warning("Failed to connect to Redis: %s. Falling back to database polling.", e)
            self.redis = None
            self._connected = False
        return self._connected

    async def disconnect(self) -> None:
        if self.redis:
            await self.redis.aclose()
            logger.info("Redis connection closed")
        self.redis = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self.redis is not None

    async def enqueue(self, post_id: str, scheduled_at: datetime) -> bool:
        """Add or move *post_id* to *scheduled_at*."""
        if not self.is_connected:
            return False
        if scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
        try:
            await self.redis.zadd(self.QUEUE_KEY, {post_id: scheduled_at.timestamp()})
            logger.debug("Queued post %s for %s", post_id, scheduled_at.isoformat())
            return True
        except Exception as e:
            logger.error("Failed to queue post %s: %s", post_id, e)
            return False

    async def dequeue_due(self, limit: int = 100) -> List[str]:
        """Remove and return up to *limit* post ids whose time has come."""
        if not self.is_connected:
            return []
        try:
            now = datetime.now(timezone.utc).timestamp()
            post_ids = await self.redis.zrangebyscore(
                self.QUEUE_KEY, min="-inf", max=now, start=0, num=limit
            )
            if post_ids:
                await self.redis.zrem(self.QUEUE_KEY, *post_ids)
                logger.debug("Dequeued %d due posts", len(post_ids))
            return post_ids
        except Exception as e:
            logger.error("Failed to read due posts from Redis: %s", e)
            return []

    async def remove(self, post_id: str) -> bool:
        if not self.is_connected:
            return False
        try:
            return (await self.redis.zrem(self.QUEUE_KEY, post_id)) > 0
        except Exception as e:
            logger.error("Failed to remove post %s from queue: %s", post_id, e)
            return False

    async def size(self) -> int:
        if not self.is_connected:
            return 0
        try:
            return await self.redis.zcard(self.QUEUE_KEY)
        except Exception as e:
            logger.error("Failed to read post queue size: %s", e)
            return 0


post_queue = PostQueueManager()
