"""
Post scheduler service.

Background loop started in the application lifespan. Every
``scheduler_check_interval`` seconds it publishes the posts that are due,
through the same publisher the cron endpoint uses.
"""

import asyncio
import logging
from typing import Optional

from infrastructure.config import settings
from services.post_publisher import PostPublisher, post_publisher
from services.post_queue import post_queue

logger = logging.getLogger(__name__)


class SchedulerService:
    """Periodically publishes due scheduled posts."""

    def __init__(self, publisher: Optional[PostPublisher] = None, check_interval: Optional[int] = None):
        self.publisher = publisher or post_publisher
        self.check_interval = check_interval or settings.scheduler_check_interval
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start the loop as a background task."""
        if self.is_running:
            logger.warning("Scheduler is already running")
            return
        self.is_running = True
        self._task = asyncio.create_task(self._loop(), name="post-scheduler")
        logger.info("Post scheduler started - checking every %d seconds", self.check_interval)

    async def stop(self) -> None:
        if not self.is_running:
            return
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Post scheduler stopped")

    async def _loop(self) -> None:
        while self.is_running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Scheduler error: %s", e, exc_info=True)
            await asyncio.sleep(self.check_interval)

    async def run_once(self) -> dict:
        """Publish the posts due right now."""
        from infrastructure.database.connection import async_session_maker

        # Drain the Redis index; the database query below decides what is published
        await post_queue.dequeue_due(limit=settings.scheduler_batch_size)

        async with async_session_maker() as db:
            result = await self.publisher.publish_due_posts(db, settings.scheduler_batch_size)
        if result["processed"]:
            logger.info("Scheduler processed %d posts", result["processed"])
        return result


scheduler_service = SchedulerService()
