"""
Scheduled post publishing.

Claims due PENDING posts, publishes each quiz to the owner's Facebook page
and records the outcome on the post and the quiz. Used by both the cron
endpoint and the in-process scheduler loop.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social import PageCredentials, PostResult, SocialAuthError, facebook_adapter
from core.security.encryption import decrypt_credential
from infrastructure.config import settings
from infrastructure.database.models.facebook import FacebookSettings
from infrastructure.database.models.quiz import Quiz, QuizStatus
from infrastructure.database.models.scheduling import PostStatus, ScheduledPost

logger = logging.getLogger(__name__)

# A claimed post still PROCESSING after this long belongs to a dead worker
STALE_PROCESSING_AFTER = timedelta(minutes=15)
INTERRUPTED_ERROR_MESSAGE = "Publishing was interrupted before completion"


def caption_for(post: Optional[ScheduledPost], quiz: Quiz) -> str:
    if post is not None and post.caption:
        return post.caption
    return f"Quiz: {quiz.title}"


async def resolve_credentials(db: AsyncSession, user_id: str) -> PageCredentials:
    """
    Page credentials for *user_id*: their connected page, else the page
    configured through environment variables.

    Raises:
        SocialAuthError: If neither is available
    """
    result = await db.execute(
        select(FacebookSettings)
        .where(FacebookSettings.user_id == user_id, FacebookSettings.is_connected.is_(True))
        .order_by(FacebookSettings.created_at.desc())
        .limit(1)
    )
    fb_settings = result.scalar_one_or_none()
    if fb_settings is not None:
        return PageCredentials(
            page_id=fb_settings.page_id,
            access_token=decrypt_credential(
                fb_settings.page_access_token_encrypted, settings.secret_key
            ),
            page_name=fb_settings.page_name,
        )
    if settings.facebook_configured:
        return PageCredentials(
            page_id=settings.facebook_page_id,
            access_token=settings.facebook_page_access_token,
        )
    raise SocialAuthError("Facebook page is not connected")


class PostPublisher:
    """Publishes scheduled quiz posts to Facebook."""

    def __init__(self, adapter=None):
        self.adapter = adapter or facebook_adapter

    async def publish_quiz(
        self, quiz: Quiz, credentials: PageCredentials, caption: str
    ) -> PostResult:
        """Photo post when the quiz has an image, text post otherwise."""
        if quiz.image_url:
            return await self.adapter.post_with_media(credentials, caption, quiz.image_url)
        return await self.adapter.post_text(credentials, caption)

    async def recover_stale_posts(
        self, db: AsyncSession, older_than: timedelta = STALE_PROCESSING_AFTER
    ) -> int:
        """
        Fail posts stuck in PROCESSING since before *older_than*.

        Whether Facebook received them is unknown, so they are not put back in
        the queue; the retry endpoint can republish them.
        """
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(ScheduledPost)
            .where(
                ScheduledPost.status == PostStatus.PROCESSING.value,
                ScheduledPost.updated_at < now - older_than,
            )
            .values(
                status=PostStatus.FAILED.value,
                error_message=INTERRUPTED_ERROR_MESSAGE,
                retry_count=ScheduledPost.retry_count + 1,
                last_retry_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        recovered = result.rowcount or 0
        if recovered:
            logger.warning("Failed %d scheduled posts stuck in PROCESSING", recovered)
        return recovered

    async def _claim_due_posts(self, db: AsyncSession, limit: int) -> list:
        now = datetime.now(timezone.utc)
        result = await db.execute(
            select(ScheduledPost.id)
            .where(
                ScheduledPost.status == PostStatus.PENDING.value,
                ScheduledPost.scheduled_at <= now,
            )
            .order_by(ScheduledPost.scheduled_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        post_ids = list(result.scalars().all())
        if not post_ids:
            return []

        await db.execute(
            update(ScheduledPost)
            .where(ScheduledPost.id.in_(post_ids))
            .values(status=PostStatus.PROCESSING.value)
        )
        await db.commit()

        result = await db.execute(
            select(ScheduledPost)
            .where(ScheduledPost.id.in_(post_ids))
            .order_by(ScheduledPost.scheduled_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().unique().all())

    async def publish_post(self, db: AsyncSession, post: ScheduledPost) -> dict:
        """Publish one claimed post and record the outcome. Never raises."""
        quiz = post.quiz
        try:
            if quiz is None:
                raise ValueError("Quiz not found")
            credentials = await resolve_credentials(db, post.user_id)
            logger.debug("Publishing scheduled post %s with %s", post.id, credentials.masked())
            result = await self.publish_quiz(quiz, credentials, caption_for(post, quiz))
            if not result.success:
                raise RuntimeError(result.error_message or "Facebook post failed")
        except Exception as e:
            logger.warning("Publishing scheduled post %s failed: %s", post.id, e)
            post.status = PostStatus.FAILED.value
            post.error_message = str(e)[:2000]
            post.retry_count = (post.retry_count or 0) + 1
            post.last_retry_at = datetime.now(timezone.utc)
            await db.commit()
            return {"id": post.id, "status": post.status, "error": post.error_message}

        now = datetime.now(timezone.utc)
        post.status = PostStatus.PUBLISHED.value
        post.fb_post_id = result.post_id
        post.published_at = now
        post.error_message = None
        quiz.status = QuizStatus.PUBLISHED.value
        await db.commit()
        logger.info("Published scheduled post %s as %s", post.id, result.post_id)
        return {"id": post.id, "status": post.status, "fb_post_id": post.fb_post_id}

    async def publish_due_posts(self, db: AsyncSession, limit: Optional[int] = None) -> dict:
        """
        Publish up to *limit* due posts, oldest first.

        Returns:
            ``{"processed": n, "results": [{"id", "status", "fb_post_id" | "error"}]}``
        """
        await self.recover_stale_posts(db)
        limit = limit or settings.scheduler_batch_size
        posts = await self._claim_due_posts(db, limit)
        if not posts:
            return {"processed": 0, "results": []}

        logger.info("Publishing %d due posts", len(posts))
        results = []
        for post in posts:
            results.append(await self.publish_post(db, post))
        return {"processed": len(results), "results": results}


post_publisher = PostPublisher()
