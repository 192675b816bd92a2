"""
Integration tests for quiz content generation and batch routes.

Batches are not left to the task queue: the enqueue call is captured and
the worker is awaited directly against the test database.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from infrastructure.database.models import BatchStatus, QuizStatus
from services.quiz_batch import quiz_batch_service

pytestmark = pytest.mark.asyncio

TODAY = datetime.now(timezone.utc).date()
DISTRIBUTION = [
    {"date": (TODAY + timedelta(days=10)).isoformat(), "slot_id": "morning"},
    {"date": (TODAY + timedelta(days=11)).isoformat(), "slot_id": "evening"},
]


@pytest.fixture
def captured_enqueue():
    with patch("api.routes.quiz_generation.task_queue.enqueue", MagicMock(return_value=True)) as enqueue:
        yield enqueue


@pytest.fixture
def run_worker_inline(session_maker, db_session, monkeypatch):
    monkeypatch.setattr(quiz_batch_service, "image_delay_ms", 0)

    async def _run(batch_id: str) -> None:
        with patch("infrastructure.database.connection.async_session_maker", session_maker):
            await quiz_batch_service.process_batch(batch_id)
        db_session.expire_all()

    return _run


async def test_generate_content_uses_fallback_without_ai(async_client, auth_headers, template):
    response = await async_client.post(
        "/api/v1/quiz-generation/content",
        json={"template_id": template.id, "language": "en", "difficulty": "easy"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["answer"]
    assert data["variables"]


async def test_generate_content_unknown_template(async_client, auth_headers):
    response = await async_client.post(
        "/api/v1/quiz-generation/content", json={"template_id": "nope"}, headers=auth_headers
    )
    assert response.status_code == 404


async def test_batch_requires_parameters(async_client, auth_headers, template):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch", json={"template_ids": [template.id]}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required parameters: count, time_slot_distribution"


async def test_batch_count_capped(async_client, auth_headers, template):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch",
        json={"template_ids": [template.id], "count": 51, "time_slot_distribution": DISTRIBUTION},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.parametrize(
    "entry, message",
    [
        ({"date": "2000-01-01", "slot_id": "morning"}, "must be in the future"),
        ({"date": (TODAY + timedelta(days=400)).isoformat(), "slot_id": "morning"}, "365 days"),
        ({"date": "2030-02-31", "slot_id": "morning"}, "Invalid time slot date"),
    ],
)
async def test_batch_rejects_slots_outside_schedule_window(
    async_client, auth_headers, template, captured_enqueue, entry, message
):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch",
        json={"template_ids": [template.id], "count": 2, "time_slot_distribution": [DISTRIBUTION[0], entry]},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert message in response.json()["detail"]
    captured_enqueue.assert_not_called()
    batches = await async_client.get("/api/v1/quiz-generation/batches", headers=auth_headers)
    assert batches.json() == []


async def test_batch_unknown_template(async_client, auth_headers, template):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch",
        json={"template_ids": [template.id, "missing"], "count": 2, "time_slot_distribution": DISTRIBUTION},
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


async def test_batch_over_quiz_limit(async_client, auth_headers, template, captured_enqueue):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch",
        json={"template_ids": [template.id], "count": 11, "time_slot_distribution": DISTRIBUTION},
        headers=auth_headers,
    )

    assert response.status_code == 403
    captured_enqueue.assert_not_called()


async def test_batch_lifecycle(async_client, auth_headers, template, captured_enqueue, run_worker_inline):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch",
        json={
            "template_ids": [template.id],
            "count": 3,
            "time_slot_distribution": DISTRIBUTION,
            "theme": "ocean",
            "difficulty": "progressive",
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    batch_id = response.json()["batch_id"]
    assert response.json()["status"] == BatchStatus.PROCESSING.value
    assert captured_enqueue.call_args.args[0] == f"batch-{batch_id}"

    await run_worker_inline(batch_id)

    status_response = await async_client.get(
        f"/api/v1/quiz-generation/batch/{batch_id}/status", headers=auth_headers
    )
    data = status_response.json()
    assert data["status"] == BatchStatus.COMPLETE.value
    assert data["is_complete"] is True
    assert data["completed_count"] == 3
    assert data["images_completed"] == 3
    assert data["current_template"] == template.name
    assert len(data["generated_quizzes"]) == 3
    assert all(q["scheduled_at"] for q in data["generated_quizzes"])
    assert all("?v=" in q["image_url"] for q in data["generated_quizzes"])

    finalize = await async_client.post(
        f"/api/v1/quiz-generation/batch/{batch_id}/finalize", headers=auth_headers
    )
    assert finalize.json()["status"] == "completed"

    quizzes = await async_client.get("/api/v1/quizzes?status=SCHEDULED", headers=auth_headers)
    assert quizzes.json()["pagination"]["total"] == 3
    assert {q["status"] for q in quizzes.json()["data"]} == {QuizStatus.SCHEDULED.value}


async def test_batch_status_of_other_user(async_client, auth_headers, other_headers, template, captured_enqueue):
    response = await async_client.post(
        "/api/v1/quiz-generation/batch",
        json={"template_ids": [template.id], "count": 1, "time_slot_distribution": DISTRIBUTION},
        headers=auth_headers,
    )

    other = await async_client.get(
        f"/api/v1/quiz-generation/batch/{response.json()['batch_id']}/status", headers=other_headers
    )
    assert other.status_code == 404


async def test_list_batches(async_client, auth_headers, template, captured_enqueue):
    for _ in range(2):
        await async_client.post(
            "/api/v1/quiz-generation/batch",
            json={"template_ids": [template.id], "count": 1, "time_slot_distribution": DISTRIBUTION},
            headers=auth_headers,
        )

    response = await async_client.get("/api/v1/quiz-generation/batches", headers=auth_headers)

    assert response.status_code == 200
    assert len(response.json()) == 2
