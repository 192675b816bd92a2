"""
Unit tests for scheduled post publishing and the scheduler loop.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

from adapters.social import PageCredentials, PostResult, SocialAuthError
from core.security.encryption import encrypt_credential
from infrastructure.config import settings
from infrastructure.database.models import (
    FacebookSettings,
    PostStatus,
    QuizStatus,
    ScheduledPost,
)
from services.post_publisher import (
    INTERRUPTED_ERROR_MESSAGE,
    PostPublisher,
    caption_for,
    resolve_credentials,
)
from services.social_scheduler import SchedulerService

pytestmark = pytest.mark.asyncio


def _adapter(result: PostResult | None = None, error: Exception | None = None) -> MagicMock:
    adapter = MagicMock()
    result = result or PostResult(success=True, post_id="1234_5678")
    adapter.post_with_media = AsyncMock(return_value=result, side_effect=error)
    adapter.post_text = AsyncMock(return_value=result, side_effect=error)
    return adapter


async def _connect_page(db_session, user) -> FacebookSettings:
    fb_settings = FacebookSettings(
        user_id=user.id,
        page_id="1234",
        page_name="Daily Quiz",
        page_access_token_encrypted=encrypt_credential("EAAB-token", settings.secret_key),
        is_connected=True,
    )
    db_session.add(fb_settings)
    await db_session.commit()
    return fb_settings


async def _post(db_session, user, quiz, minutes: int, caption: str | None = None) -> ScheduledPost:
    post = ScheduledPost(
        user_id=user.id,
        quiz_id=quiz.id,
        scheduled_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
        status=PostStatus.PENDING.value,
        caption=caption,
    )
    db_session.add(post)
    await db_session.commit()
    return post


class TestCaption:

    def test_post_caption_wins(self, quiz):
        post = ScheduledPost(caption="Can you solve it?")
        assert caption_for(post, quiz) == "Can you solve it?"

    def test_default_caption(self, quiz):
        assert caption_for(None, quiz) == f"Quiz: {quiz.title}"


async def test_resolve_credentials_decrypts_connected_page(db_session, test_user):
    await _connect_page(db_session, test_user)

    credentials = await resolve_credentials(db_session, test_user.id)

    assert credentials.page_id == "1234"
    assert credentials.access_token == "EAAB-token"


async def test_resolve_credentials_without_page(db_session, test_user, monkeypatch):
    monkeypatch.setattr(settings, "facebook_page_id", None)
    with pytest.raises(SocialAuthError):
        await resolve_credentials(db_session, test_user.id)


async def test_resolve_credentials_env_fallback(db_session, test_user, monkeypatch):
    monkeypatch.setattr(settings, "facebook_page_id", "env-page")
    monkeypatch.setattr(settings, "facebook_page_access_token", "env-token")

    credentials = await resolve_credentials(db_session, test_user.id)

    assert credentials == PageCredentials(page_id="env-page", access_token="env-token")


async def test_publish_due_posts_publishes_only_due(db_session, test_user, quiz):
    await _connect_page(db_session, test_user)
    due = await _post(db_session, test_user, quiz, minutes=-5, caption="Today's quiz")
    future = await _post(db_session, test_user, quiz, minutes=60)
    adapter = _adapter()

    result = await PostPublisher(adapter=adapter).publish_due_posts(db_session, limit=10)

    assert result["processed"] == 1
    assert result["results"][0] == {"id": due.id, "status": "PUBLISHED", "fb_post_id": "1234_5678"}
    adapter.post_with_media.assert_awaited_once()
    assert adapter.post_with_media.await_args.args[1] == "Today's quiz"

    await db_session.refresh(due)
    await db_session.refresh(future)
    await db_session.refresh(quiz)
    assert due.status == PostStatus.PUBLISHED.value
    assert due.published_at is not None
    assert future.status == PostStatus.PENDING.value
    assert quiz.status == QuizStatus.PUBLISHED.value


async def test_text_post_when_quiz_has_no_image(db_session, test_user, quiz):
    await _connect_page(db_session, test_user)
    quiz.image_url = None
    await db_session.commit()
    await _post(db_session, test_user, quiz, minutes=-1)
    adapter = _adapter()

    await PostPublisher(adapter=adapter).publish_due_posts(db_session)

    adapter.post_text.assert_awaited_once()
    adapter.post_with_media.assert_not_awaited()


async def test_failed_publish_records_error(db_session, test_user, quiz):
    await _connect_page(db_session, test_user)
    post = await _post(db_session, test_user, quiz, minutes=-1)
    adapter = _adapter(error=SocialAuthError("Session has expired"))

    result = await PostPublisher(adapter=adapter).publish_due_posts(db_session)

    assert result["results"][0]["status"] == "FAILED"
    await db_session.refresh(post)
    assert post.status == PostStatus.FAILED.value
    assert post.error_message == "Session has expired"
    assert post.retry_count == 1
    assert post.last_retry_at is not None


async def test_unsuccessful_result_is_a_failure(db_session, test_user, quiz):
    await _connect_page(db_session, test_user)
    post = await _post(db_session, test_user, quiz, minutes=-1)
    adapter = _adapter(result=PostResult(success=False, error_message="Graph said no"))

    await PostPublisher(adapter=adapter).publish_due_posts(db_session)

    await db_session.refresh(post)
    assert post.status == PostStatus.FAILED.value
    assert post.error_message == "Graph said no"


async def test_nothing_due(db_session):
    result = await PostPublisher(adapter=_adapter()).publish_due_posts(db_session)
    assert result == {"processed": 0, "results": []}


async def _processing_post(db_session, user, quiz, claimed_minutes_ago: int) -> ScheduledPost:
    claimed_at = datetime.now(timezone.utc) - timedelta(minutes=claimed_minutes_ago)
    post = ScheduledPost(
        user_id=user.id,
        quiz_id=quiz.id,
        scheduled_at=claimed_at,
        status=PostStatus.PROCESSING.value,
        updated_at=claimed_at,
    )
    db_session.add(post)
    await db_session.commit()
    return post


async def test_stuck_processing_post_is_failed(db_session, test_user, quiz):
    post = await _processing_post(db_session, test_user, quiz, claimed_minutes_ago=120)
    adapter = _adapter()

    result = await PostPublisher(adapter=adapter).publish_due_posts(db_session)

    assert result == {"processed": 0, "results": []}
    adapter.post_with_media.assert_not_awaited()
    await db_session.refresh(post)
    assert post.status == PostStatus.FAILED.value
    assert post.error_message == INTERRUPTED_ERROR_MESSAGE
    assert post.retry_count == 1
    assert post.can_retry


async def test_recently_claimed_post_left_alone(db_session, test_user, quiz):
    post = await _processing_post(db_session, test_user, quiz, claimed_minutes_ago=1)

    recovered = await PostPublisher(adapter=_adapter()).recover_stale_posts(db_session)

    assert recovered == 0
    await db_session.refresh(post)
    assert post.status == PostStatus.PROCESSING.value


async def test_scheduler_run_once_uses_own_session(session_maker, db_session, test_user, quiz):
    await _connect_page(db_session, test_user)
    await _post(db_session, test_user, quiz, minutes=-1)
    scheduler = SchedulerService(publisher=PostPublisher(adapter=_adapter()), check_interval=1)

    with patch("infrastructure.database.connection.async_session_maker", session_maker):
        result = await scheduler.run_once()

    assert result["processed"] == 1
    rows = (await db_session.execute(select(ScheduledPost.status))).scalars().all()
    assert rows == [PostStatus.PUBLISHED.value]


async def test_scheduler_start_and_stop():
    publisher = MagicMock()
    publisher.publish_due_posts = AsyncMock(return_value={"processed": 0, "results": []})
    scheduler = SchedulerService(publisher=publisher, check_interval=60)

    with patch("infrastructure.database.connection.async_session_maker", MagicMock()):
        scheduler.start()
        assert scheduler.is_running
        await scheduler.stop()

    assert not scheduler.is_running
