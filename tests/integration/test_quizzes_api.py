"""
Integration tests for quiz routes.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from adapters.social import PostResult, SocialAuthError
from core.retry import ConnectionRetryError
from infrastructure.config import settings
from infrastructure.database.models import GenerationLog, PostStatus, QuizStatus, ScheduledPost

pytestmark = pytest.mark.asyncio


def _quiz_body(template_id: str, **overrides) -> dict:
    body = {
        "title": "Mot du jour",
        "quiz_type": "WORDLE",
        "template_id": template_id,
        "variables": {"answer": "MAISON", "hint": "On y habite"},
        "answer": "MAISON",
        "language": "fr",
    }
    body.update(overrides)
    return body


async def test_create_quiz_starts_as_draft(async_client, auth_headers, template):
    response = await async_client.post("/api/v1/quizzes", json=_quiz_body(template.id), headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == QuizStatus.DRAFT.value
    assert data["answer"] == "MAISON"
    assert data["template_id"] == template.id


async def test_create_quiz_with_foreign_template(async_client, other_headers, template):
    response = await async_client.post("/api/v1/quizzes", json=_quiz_body(template.id), headers=other_headers)
    assert response.status_code == 404


async def test_quiz_limit(async_client, auth_headers, template):
    for i in range(10):
        response = await async_client.post(
            "/api/v1/quizzes", json=_quiz_body(template.id, title=f"Q{i}"), headers=auth_headers
        )
        assert response.status_code == 201

    response = await async_client.post("/api/v1/quizzes", json=_quiz_body(template.id), headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["detail"]["resource"] == "quizzes"


async def test_list_pagination_and_filters(async_client, auth_headers, template, quiz):
    for i in range(3):
        await async_client.post(
            "/api/v1/quizzes", json=_quiz_body(template.id, title=f"Extra {i}"), headers=auth_headers
        )

    page = await async_client.get("/api/v1/quizzes?page=1&limit=2", headers=auth_headers)
    ready = await async_client.get("/api/v1/quizzes?status=READY", headers=auth_headers)
    searched = await async_client.get("/api/v1/quizzes?search=extra", headers=auth_headers)

    assert page.json()["pagination"] == {"page": 1, "limit": 2, "total": 4, "total_pages": 2}
    assert len(page.json()["data"]) == 2
    assert [q["id"] for q in ready.json()["data"]] == [quiz.id]
    assert searched.json()["pagination"]["total"] == 3


async def test_list_returns_503_when_database_unavailable(async_client, auth_headers):
    with patch(
        "api.routes.quizzes.with_connection_retry",
        AsyncMock(side_effect=ConnectionRetryError(3, OSError("connection refused"))),
    ):
        response = await async_client.get("/api/v1/quizzes", headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "CONNECTION_ERROR"


async def test_search_matches_answer(async_client, auth_headers, quiz):
    response = await async_client.get("/api/v1/quizzes/search?query=plag", headers=auth_headers)

    assert response.status_code == 200
    assert [q["id"] for q in response.json()] == [quiz.id]


async def test_search_escapes_wildcards(async_client, auth_headers, quiz):
    response = await async_client.get("/api/v1/quizzes/search?query=%25", headers=auth_headers)
    assert response.json() == []


async def test_get_quiz_includes_template(async_client, auth_headers, quiz, template):
    response = await async_client.get(f"/api/v1/quizzes/{quiz.id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["template"]["id"] == template.id


async def test_update_quiz(async_client, auth_headers, quiz):
    response = await async_client.put(
        f"/api/v1/quizzes/{quiz.id}",
        json={"title": "Nouveau titre", "status": "DRAFT"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Nouveau titre"
    assert response.json()["status"] == "DRAFT"


async def test_update_rejects_unknown_status(async_client, auth_headers, quiz):
    response = await async_client.put(
        f"/api/v1/quizzes/{quiz.id}", json={"status": "ARCHIVED"}, headers=auth_headers
    )
    assert response.status_code == 400


async def test_delete_quiz_removes_posts(async_client, db_session, auth_headers, test_user, quiz):
    db_session.add(
        ScheduledPost(
            user_id=test_user.id,
            quiz_id=quiz.id,
            scheduled_at=datetime.now(timezone.utc) + timedelta(days=1),
            status=PostStatus.PENDING.value,
        )
    )
    await db_session.commit()

    response = await async_client.delete(f"/api/v1/quizzes/{quiz.id}", headers=auth_headers)

    assert response.status_code == 200
    assert (await db_session.execute(select(ScheduledPost.id))).scalars().all() == []


async def test_generate_image_in_mock_mode(async_client, db_session, auth_headers, quiz):
    response = await async_client.post(f"/api/v1/quizzes/{quiz.id}/image", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["image_url"].startswith("https://picsum.photos/")
    log = (await db_session.execute(select(GenerationLog))).scalars().one()
    assert log.resource_type == "quiz_image"
    assert log.status == "fallback"


async def test_publish_requires_image(async_client, db_session, auth_headers, quiz):
    quiz.image_url = None
    await db_session.commit()

    response = await async_client.post(f"/api/v1/quizzes/{quiz.id}/publish", headers=auth_headers)
    assert response.status_code == 400


async def test_publish_now(async_client, db_session, auth_headers, quiz, monkeypatch):
    monkeypatch.setattr(settings, "facebook_page_id", "1234")
    monkeypatch.setattr(settings, "facebook_page_access_token", "EAAB-token")
    result = PostResult(success=True, post_id="1234_5678", post_url="https://www.facebook.com/1234/posts/5678")

    with patch(
        "services.post_publisher.facebook_adapter.post_with_media", AsyncMock(return_value=result)
    ) as post_with_media:
        response = await async_client.post(f"/api/v1/quizzes/{quiz.id}/publish", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["fb_post_id"] == "1234_5678"
    assert post_with_media.await_args.args[1] == f"Quiz: {quiz.title}"

    await db_session.refresh(quiz)
    assert quiz.status == QuizStatus.PUBLISHED.value
    post = (await db_session.execute(select(ScheduledPost))).scalars().one()
    assert post.status == PostStatus.PUBLISHED.value


async def test_publish_without_connected_page(async_client, auth_headers, quiz, monkeypatch):
    monkeypatch.setattr(settings, "facebook_page_id", None)

    response = await async_client.post(f"/api/v1/quizzes/{quiz.id}/publish", headers=auth_headers)

    assert response.status_code == 502


async def test_publish_graph_failure(async_client, auth_headers, quiz, monkeypatch):
    monkeypatch.setattr(settings, "facebook_page_id", "1234")
    monkeypatch.setattr(settings, "facebook_page_access_token", "EAAB-token")

    with patch(
        "services.post_publisher.facebook_adapter.post_with_media",
        AsyncMock(side_effect=SocialAuthError("Session has expired")),
    ):
        response = await async_client.post(f"/api/v1/quizzes/{quiz.id}/publish", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Session has expired"
