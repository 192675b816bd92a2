"""
Integration tests for auto-schedule slots, daily availability and the cron
publishing endpoint.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from adapters.social import PostResult
from infrastructure.config import settings
from infrastructure.database.models import PostStatus, ScheduledPost

pytestmark = pytest.mark.asyncio


async def _add_post(db_session, user, quiz, scheduled_at, status=PostStatus.PENDING.value):
    post = ScheduledPost(user_id=user.id, quiz_id=quiz.id, scheduled_at=scheduled_at, status=status)
    db_session.add(post)
    await db_session.commit()
    return post


class TestAutoScheduleSlots:

    async def test_create_single_and_duplicate(self, async_client, auth_headers):
        body = {"day_of_week": 1, "time_of_day": "09:30"}
        first = await async_client.post("/api/v1/auto-schedule-slots", json=body, headers=auth_headers)
        second = await async_client.post("/api/v1/auto-schedule-slots", json=body, headers=auth_headers)

        assert first.status_code == 201
        assert first.json()["is_active"] is True
        assert second.status_code == 409

    async def test_invalid_time(self, async_client, auth_headers):
        response = await async_client.post(
            "/api/v1/auto-schedule-slots", json={"day_of_week": 1, "time_of_day": "25:00"}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_bulk_create_skips_duplicates(self, async_client, auth_headers):
        await async_client.post(
            "/api/v1/auto-schedule-slots", json={"day_of_week": 1, "time_of_day": "09:00"}, headers=auth_headers
        )

        response = await async_client.post(
            "/api/v1/auto-schedule-slots",
            json={
                "slots": [
                    {"day_of_week": 1, "time_of_day": "09:00"},
                    {"day_of_week": 2, "time_of_day": "09:00"},
                    {"day_of_week": 2, "time_of_day": "09:00"},
                    {"day_of_week": 3, "time_of_day": "18:00"},
                ]
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Created 2 time slots"

        listed = await async_client.get("/api/v1/auto-schedule-slots", headers=auth_headers)
        assert [(s["day_of_week"], s["time_of_day"]) for s in listed.json()] == [
            (1, "09:00"), (2, "09:00"), (3, "18:00"),
        ]

    async def test_bulk_operations(self, async_client, auth_headers):
        await async_client.post(
            "/api/v1/auto-schedule-slots",
            json={"slots": [
                {"day_of_week": 1, "time_of_day": "09:00"},
                {"day_of_week": 1, "time_of_day": "18:00"},
                {"day_of_week": 2, "time_of_day": "18:00"},
            ]},
            headers=auth_headers,
        )

        toggled = await async_client.post(
            "/api/v1/auto-schedule-slots/bulk",
            json={"operation": "toggleByDay", "day_of_week": 1, "is_active": False},
            headers=auth_headers,
        )
        assert toggled.json()["count"] == 2

        inactive = await async_client.post(
            "/api/v1/auto-schedule-slots/bulk", json={"operation": "deleteInactive"}, headers=auth_headers
        )
        assert inactive.json()["count"] == 2

        by_time = await async_client.post(
            "/api/v1/auto-schedule-slots/bulk",
            json={"operation": "deleteByTime", "time_of_day": "18:00"},
            headers=auth_headers,
        )
        assert by_time.json()["count"] == 1

    async def test_bulk_operation_requires_day(self, async_client, auth_headers):
        response = await async_client.post(
            "/api/v1/auto-schedule-slots/bulk", json={"operation": "deleteByDay"}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_update_and_delete(self, async_client, auth_headers, other_headers):
        slot = (await async_client.post(
            "/api/v1/auto-schedule-slots", json={"day_of_week": 4, "time_of_day": "12:00"}, headers=auth_headers
        )).json()

        foreign = await async_client.put(
            f"/api/v1/auto-schedule-slots/{slot['id']}", json={"is_active": False}, headers=other_headers
        )
        assert foreign.status_code == 404

        updated = await async_client.put(
            f"/api/v1/auto-schedule-slots/{slot['id']}",
            json={"time_of_day": "13:15", "is_active": False},
            headers=auth_headers,
        )
        assert updated.json()["time_of_day"] == "13:15"
        assert updated.json()["is_active"] is False

        deleted = await async_client.delete(f"/api/v1/auto-schedule-slots/{slot['id']}", headers=auth_headers)
        assert deleted.json() == {"success": True}

    async def test_next_available(self, async_client, auth_headers):
        missing = await async_client.get("/api/v1/auto-schedule-slots/next-available", headers=auth_headers)
        assert missing.status_code == 404

        await async_client.post(
            "/api/v1/auto-schedule-slots",
            json={"slots": [{"day_of_week": day, "time_of_day": "23:59"} for day in range(7)]},
            headers=auth_headers,
        )
        response = await async_client.get("/api/v1/auto-schedule-slots/next-available", headers=auth_headers)

        assert response.status_code == 200
        scheduled_at = datetime.fromisoformat(response.json()["scheduled_at"])
        now = datetime.now(timezone.utc)
        assert now < scheduled_at <= now + timedelta(days=1, minutes=1)
        assert scheduled_at.strftime("%H:%M") == "23:59"


class TestAvailableSlots:

    async def test_requires_valid_date(self, async_client, auth_headers):
        response = await async_client.get("/api/v1/slots/available?date=tomorrow", headers=auth_headers)
        assert response.status_code == 400

    async def test_open_posts_take_their_hour(self, async_client, db_session, auth_headers, test_user, quiz):
        await _add_post(db_session, test_user, quiz, datetime(2031, 5, 4, 9, tzinfo=timezone.utc))
        await _add_post(
            db_session, test_user, quiz, datetime(2031, 5, 4, 12, tzinfo=timezone.utc),
            status=PostStatus.FAILED.value,
        )

        response = await async_client.get("/api/v1/slots/available?date=2031-05-04", headers=auth_headers)

        times = [slot["time"] for slot in response.json()["slots"]]
        assert "09:00" not in times
        assert "12:00" in times
        assert len(times) == 12
        assert times[0] == "10:00" and times[-1] == "21:00"


class TestCronPublish:

    async def test_requires_secret(self, async_client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")

        missing = await async_client.post("/api/v1/cron/publish-posts")
        wrong = await async_client.post(
            "/api/v1/cron/publish-posts", headers={"Authorization": "Bearer nope"}
        )

        assert missing.status_code == 401
        assert wrong.status_code == 401

    async def test_admin_token_without_secret(self, async_client, monkeypatch, auth_headers, admin_headers):
        monkeypatch.setattr(settings, "cron_secret", None)

        as_user = await async_client.post("/api/v1/cron/publish-posts", headers=auth_headers)
        as_admin = await async_client.post("/api/v1/cron/publish-posts", headers=admin_headers)

        assert as_user.status_code == 401
        assert as_admin.status_code == 200
        assert as_admin.json() == {"processed": 0, "results": []}

    async def test_publishes_due_posts(self, async_client, db_session, monkeypatch, test_user, quiz):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        monkeypatch.setattr(settings, "facebook_page_id", "1234")
        monkeypatch.setattr(settings, "facebook_page_access_token", "EAAB-token")
        post = await _add_post(
            db_session, test_user, quiz, datetime.now(timezone.utc) - timedelta(minutes=1)
        )

        with patch(
            "services.post_publisher.facebook_adapter.post_with_media",
            AsyncMock(return_value=PostResult(success=True, post_id="1234_1")),
        ):
            response = await async_client.post(
                "/api/v1/cron/publish-posts", headers={"Authorization": "Bearer s3cret"}
            )

        assert response.status_code == 200
        assert response.json()["processed"] == 1
        await db_session.refresh(post)
        assert post.status == PostStatus.PUBLISHED.value
        assert post.fb_post_id == "1234_1"
