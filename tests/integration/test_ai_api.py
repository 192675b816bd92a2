"""
Integration tests for single-field AI generation.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from infrastructure.database.models import GenerationLog, UsageRecord

pytestmark = pytest.mark.asyncio

FIELD_BODY = {"field": "hint", "context": "summer holidays", "template_type": "WORDLE", "language": "fr"}


async def test_generate_field_without_model(async_client, db_session, auth_headers):
    response = await async_client.post("/api/v1/ai/generate", json=FIELD_BODY, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["content"] == "Sample hint for WORDLE"

    log = (await db_session.execute(select(GenerationLog))).scalars().one()
    assert log.status == "fallback"
    # fallback output is not billed
    assert (await db_session.execute(select(UsageRecord))).scalars().all() == []


async def test_word_only_is_uppercased(async_client, auth_headers):
    with patch(
        "api.routes.ai.quiz_ai_service.generate_field",
        AsyncMock(return_value={"content": "x", "answer": " soleil ", "theme": "summer"}),
    ):
        response = await async_client.post(
            "/api/v1/ai/generate", json={**FIELD_BODY, "word_only": True}, headers=auth_headers
        )

    assert response.json() == {"answer": "SOLEIL"}


async def test_model_failure_is_502_and_logged(async_client, db_session, auth_headers):
    with patch(
        "api.routes.ai.quiz_ai_service.generate_field",
        AsyncMock(side_effect=RuntimeError("overloaded")),
    ):
        response = await async_client.post("/api/v1/ai/generate", json=FIELD_BODY, headers=auth_headers)

    assert response.status_code == 502
    log = (await db_session.execute(select(GenerationLog))).scalars().one()
    assert log.status == "failed"
    assert log.error_message == "overloaded"


async def test_unsupported_language(async_client, auth_headers):
    response = await async_client.post(
        "/api/v1/ai/generate", json={**FIELD_BODY, "language": "xx"}, headers=auth_headers
    )
    assert response.status_code == 400


async def test_config(async_client, auth_headers):
    response = await async_client.get("/api/v1/ai/config", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["anthropic_configured"] is False
    assert data["replicate_configured"] is False
    assert data["model"]
