"""
Integration tests for usage reporting and dictionary word usage.
"""

import pytest

from core.plans import DEFAULT_LIMITS

pytestmark = pytest.mark.asyncio


class TestUsage:

    async def test_defaults_for_new_user(self, async_client, auth_headers):
        response = await async_client.get("/api/v1/usage", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["limits"] == DEFAULT_LIMITS
        assert data["usage"]["quizzes"] == 0
        assert data["remaining"]["templates"] == DEFAULT_LIMITS["templates"]

    async def test_counts_live_resources(self, async_client, auth_headers, quiz):
        response = await async_client.get("/api/v1/usage", headers=auth_headers)

        data = response.json()
        assert data["usage"]["quizzes"] == 1
        assert data["usage"]["templates"] == 1
        assert data["remaining"]["quizzes"] == DEFAULT_LIMITS["quizzes"] - 1

    async def test_organization_usage_requires_membership(self, async_client, auth_headers, other_headers):
        org = (await async_client.post(
            "/api/v1/organizations", json={"name": "Quiz Club", "slug": "quiz-club"}, headers=auth_headers
        )).json()

        mine = await async_client.get(f"/api/v1/organizations/{org['id']}/usage", headers=auth_headers)
        theirs = await async_client.get(f"/api/v1/organizations/{org['id']}/usage", headers=other_headers)

        assert mine.status_code == 200
        assert mine.json()["usage"]["teamMembers"] == 1
        assert theirs.status_code == 404


class TestDictionary:

    async def test_mark_and_lookup(self, async_client, auth_headers):
        marked = await async_client.post(
            "/api/v1/dictionary/word-usage", json={"word": "  Plage ", "language": "fr"}, headers=auth_headers
        )
        assert marked.json()["word"] == "plage"
        assert marked.json()["is_used"] is True

        lookup = await async_client.get(
            "/api/v1/dictionary/word-usage?language=fr&word=PLAGE", headers=auth_headers
        )
        assert lookup.json() == {"word": "plage", "is_used": True}

        listed = await async_client.get("/api/v1/dictionary/word-usage?language=fr", headers=auth_headers)
        assert [w["word"] for w in listed.json()["words"]] == ["plage"]

        other_language = await async_client.get("/api/v1/dictionary/word-usage?language=en", headers=auth_headers)
        assert other_language.json()["words"] == []

    async def test_word_required(self, async_client, auth_headers):
        response = await async_client.post(
            "/api/v1/dictionary/word-usage", json={"word": "   "}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_toggle(self, async_client, auth_headers):
        on = await async_client.put(
            "/api/v1/dictionary/word-usage", json={"word": "maison"}, headers=auth_headers
        )
        off = await async_client.put(
            "/api/v1/dictionary/word-usage", json={"word": "maison"}, headers=auth_headers
        )

        assert on.json()["is_used"] is True
        assert off.json()["is_used"] is False
        lookup = await async_client.get("/api/v1/dictionary/word-usage?word=maison", headers=auth_headers)
        assert lookup.json()["is_used"] is False

    async def test_reset_only_touches_language(self, async_client, auth_headers):
        for word, language in (("plage", "fr"), ("soleil", "fr"), ("beach", "en")):
            await async_client.post(
                "/api/v1/dictionary/word-usage", json={"word": word, "language": language}, headers=auth_headers
            )

        response = await async_client.post(
            "/api/v1/dictionary/word-usage/reset", json={"language": "fr"}, headers=auth_headers
        )

        assert response.json()["count"] == 2
        english = await async_client.get("/api/v1/dictionary/word-usage?language=en", headers=auth_headers)
        assert len(english.json()["words"]) == 1
