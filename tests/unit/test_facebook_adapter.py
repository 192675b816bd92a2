"""
Unit tests for the Facebook Graph adapter with httpx mocked out.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from adapters.social import (
    FacebookAdapter,
    PageCredentials,
    SocialAPIError,
    SocialAuthError,
    SocialRateLimitError,
    SocialValidationError,
)

pytestmark = pytest.mark.asyncio

CREDENTIALS = PageCredentials(page_id="1234", access_token="EAAB-token")
IMAGE_URL = "https://replicate.delivery/pbxt/quiz.png"


def _response(status_code: int, payload: dict) -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _patched_client(get=None, post=None):
    client = MagicMock()
    client.get = AsyncMock(return_value=get)
    client.post = AsyncMock(return_value=post)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=client)
    context.__aexit__ = AsyncMock(return_value=False)
    return patch("adapters.social.facebook_adapter.httpx.AsyncClient", return_value=context), client


async def test_post_text_success():
    patcher, client = _patched_client(post=_response(200, {"id": "1234_5678"}))
    with patcher:
        result = await FacebookAdapter().post_text(CREDENTIALS, "Quiz: Guess the word")

    assert result.success
    assert result.post_id == "1234_5678"
    assert result.post_url == "https://www.facebook.com/1234/posts/5678"
    url = client.post.await_args.args[0]
    assert url.endswith("/1234/feed")


async def test_post_with_media_uses_photos_endpoint():
    patcher, client = _patched_client(post=_response(200, {"id": "999", "post_id": "1234_42"}))
    with patcher:
        result = await FacebookAdapter().post_with_media(CREDENTIALS, "caption", IMAGE_URL)

    assert result.post_id == "1234_42"
    assert client.post.await_args.args[0].endswith("/1234/photos")
    assert client.post.await_args.kwargs["data"]["url"] == IMAGE_URL


@pytest.mark.parametrize(
    "url",
    ["http://replicate.delivery/quiz.png", "https://evil.example.com/quiz.png"],
)
async def test_media_url_must_be_whitelisted_https(url):
    with pytest.raises(SocialValidationError):
        await FacebookAdapter().post_with_media(CREDENTIALS, "caption", url)


async def test_missing_credentials():
    with pytest.raises(SocialValidationError):
        await FacebookAdapter().post_text(PageCredentials(page_id="", access_token=""), "hi")


async def test_rate_limit_maps_to_rate_limit_error():
    patcher, _ = _patched_client(post=_response(429, {}))
    with patcher, pytest.raises(SocialRateLimitError):
        await FacebookAdapter().post_text(CREDENTIALS, "hi")


async def test_expired_token_maps_to_auth_error():
    payload = {"error": {"message": "Session has expired", "code": 190}}
    patcher, _ = _patched_client(post=_response(400, payload))
    with patcher, pytest.raises(SocialAuthError, match="expired"):
        await FacebookAdapter().post_text(CREDENTIALS, "hi")


async def test_other_graph_errors_map_to_api_error():
    payload = {"error": {"message": "Unsupported post request", "code": 100}}
    patcher, _ = _patched_client(post=_response(400, payload))
    with patcher, pytest.raises(SocialAPIError, match="Unsupported"):
        await FacebookAdapter().post_text(CREDENTIALS, "hi")


async def test_verify_credentials_returns_page():
    patcher, client = _patched_client(get=_response(200, {"id": "1234", "name": "Daily Quiz"}))
    with patcher:
        page = await FacebookAdapter().verify_credentials("EAAB-token")

    assert page.page_id == "1234"
    assert page.page_name == "Daily Quiz"
    assert client.get.await_args.kwargs["params"]["access_token"] == "EAAB-token"


async def test_mock_mode_makes_no_requests():
    with patch("adapters.social.facebook_adapter.httpx.AsyncClient") as client_cls:
        result = await FacebookAdapter(mock_mode=True).post_with_media(
            CREDENTIALS, "caption", IMAGE_URL
        )

    assert result.success
    client_cls.assert_not_called()


def test_masked_credentials_hide_token():
    masked = CREDENTIALS.masked()

    assert masked["page_id"] == "1234"
    assert masked["access_token"] == "EAAB..."
    assert "EAAB-token" not in str(masked)
