"""
Facebook Graph API adapter for page publishing.

Posts quizzes to a Facebook Page with a page access token using Graph API
v18.0. Photo posts go to ``/{page_id}/photos`` and text posts to
``/{page_id}/feed``.
"""

import logging
from urllib.parse import urlparse as _urlparse

import httpx

from .base import (
    BaseSocialAdapter,
    PageCredentials,
    PageInfo,
    PostResult,
    SocialAPIError,
    SocialAuthError,
    SocialPlatform,
    SocialRateLimitError,
    SocialValidationError,
)

logger = logging.getLogger(__name__)

# Only image hosts we generate on are passed to Graph as photo URLs
_ALLOWED_MEDIA_DOMAINS = {
    "replicate.delivery",
    "pbxt.replicate.delivery",
    "cdn.replicate.com",
    "picsum.photos",
}

# Graph error codes meaning the token is unusable
_AUTH_ERROR_CODES = {102, 190}


def _validate_media_url(url: str) -> None:
    """Raise ValueError if the URL scheme is not HTTPS or domain is not whitelisted."""
    parsed = _urlparse(url)
    if parsed.scheme != "https":
        raise ValueError(f"Media URL must use HTTPS: {url}")
    if not any(
        parsed.netloc == d or parsed.netloc.endswith("." + d)
        for d in _ALLOWED_MEDIA_DOMAINS
    ):
        raise ValueError(f"Media URL domain not allowed: {parsed.netloc}")


def _graph_error(response: httpx.Response, default: str) -> tuple[str, int | None]:
    try:
        error = response.json().get("error", {})
    except ValueError:
        return default, None
    return error.get("message", default), error.get("code")


class FacebookAdapter(BaseSocialAdapter):
    """
    Facebook Graph API adapter for posting to pages.

    In mock mode no HTTP request is made and fake post ids are returned.
    """

    platform = SocialPlatform.FACEBOOK

    API_BASE_URL = "https://graph.facebook.com/v18.0"

    # Facebook allows up to 63,206 characters
    CHARACTER_LIMIT = 63206

    def __init__(self, timeout: int = 30, mock_mode: bool = False):
        self.timeout = timeout
        self.mock_mode = mock_mode

    def _raise_for_response(self, response: httpx.Response, default: str) -> None:
        if response.status_code == 429:
            logger.error("Facebook rate limit exceeded")
            raise SocialRateLimitError("Rate limit exceeded")
        if response.status_code in (200, 201):
            return
        message, code = _graph_error(response, default)
        logger.error("Facebook API error (%s): %s", response.status_code, message)
        if response.status_code == 401 or code in _AUTH_ERROR_CODES:
            raise SocialAuthError(message)
        raise SocialAPIError(message)

    @staticmethod
    def _post_url(post_id: str) -> str:
        return f"https://www.facebook.com/{post_id.replace('_', '/posts/')}"

    async def verify_credentials(self, access_token: str) -> PageInfo:
        """
        Look up the page behind a page access token via ``/me``.

        Raises:
            SocialAuthError: If the token is rejected
            SocialAPIError: On any other Graph failure
        """
        if not access_token:
            raise SocialValidationError("page_access_token is required")

        if self.mock_mode:
            return PageInfo(page_id="123456789", page_name="Mock Page")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.API_BASE_URL}/me",
                    params={"fields": "id,name", "access_token": access_token},
                )
        except httpx.HTTPError as e:
            logger.error("HTTP error during Facebook token check: %s", e)
            raise SocialAPIError(f"Facebook request failed: {e}") from e

        self._raise_for_response(response, "Invalid access token")
        data = response.json()
        return PageInfo(page_id=str(data.get("id", "")), page_name=data.get("name"))

    async def post_text(self, credentials: PageCredentials, text: str) -> PostResult:
        """
        Post to the page feed.

        Raises:
            SocialValidationError: If credentials are missing or text is too long
            SocialAPIError: If post creation fails
        """
        self.validate_text_length(text)
        if not credentials.page_id or not credentials.access_token:
            raise SocialValidationError("page_id and page_token are required for Facebook posting")

        if self.mock_mode:
            logger.info("Mock mode: Would post to Facebook page %s", credentials.page_id)
            return PostResult(
                success=True,
                post_id=f"{credentials.page_id}_987654321",
                post_url=f"https://www.facebook.com/{credentials.page_id}/posts/987654321",
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.info("Posting to Facebook page %s", credentials.page_id)
                response = await client.post(
                    f"{self.API_BASE_URL}/{credentials.page_id}/feed",
                    data={"message": text, "access_token": credentials.access_token},
                )
        except httpx.HTTPError as e:
            logger.error("HTTP error during Facebook posting: %s", e)
            raise SocialAPIError(f"Facebook request failed: {e}") from e

        self._raise_for_response(response, "Post creation failed")
        post_id = response.json().get("id", "")
        post_url = self._post_url(post_id)
        logger.info("Facebook post created: %s", post_url)
        return PostResult(success=True, post_id=post_id, post_url=post_url)

    async def post_with_media(
        self, credentials: PageCredentials, text: str, image_url: str
    ) -> PostResult:
        """
        Publish a photo with *text* as its caption.

        Raises:
            SocialValidationError: If the image URL is not allowed
            SocialAPIError: If posting fails
        """
        self.validate_text_length(text)
        if not credentials.page_id or not credentials.access_token:
            raise SocialValidationError("page_id and page_token are required for Facebook posting")

        try:
            _validate_media_url(image_url)
        except ValueError as e:
            logger.warning("Rejecting media URL: %s", e)
            raise SocialValidationError(f"Media URL not allowed: {e}") from e

        if self.mock_mode:
            logger.info("Mock mode: Would post photo to Facebook page %s", credentials.page_id)
            return PostResult(
                success=True,
                post_id=f"{credentials.page_id}_987654321",
                post_url=f"https://www.facebook.com/{credentials.page_id}/posts/987654321",
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.info("Posting photo to Facebook page %s", credentials.page_id)
                response = await client.post(
                    f"{self.API_BASE_URL}/{credentials.page_id}/photos",
                    data={
                        "url": image_url,
                        "caption": text,
                        "access_token": credentials.access_token,
                    },
                )
        except httpx.HTTPError as e:
            logger.error("HTTP error during Facebook photo posting: %s", e)
            raise SocialAPIError(f"Facebook request failed: {e}") from e

        self._raise_for_response(response, "Post creation failed")
        result = response.json()
        post_id = result.get("post_id", result.get("id", ""))
        post_url = self._post_url(post_id)
        logger.info("Facebook photo post created: %s", post_url)
        return PostResult(success=True, post_id=post_id, post_url=post_url)

    def get_character_limit(self) -> int:
        """Get Facebook character limit."""
        return self.CHARACTER_LIMIT
