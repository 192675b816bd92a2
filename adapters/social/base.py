"""
Base classes and interfaces for social page publishing adapters.

Provides the abstract base class, data structures and exceptions used when
publishing quizzes to a social page.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum


class SocialPlatform(StrEnum):
    """Supported publishing platforms."""

    FACEBOOK = "facebook"


@dataclass
class PageCredentials:
    """Credentials for posting on behalf of a single page."""

    page_id: str
    access_token: str
    page_name: str | None = None

    def masked(self) -> dict:
        """Loggable view of the credentials."""
        return {
            "page_id": self.page_id,
            "page_name": self.page_name,
            "access_token": f"{self.access_token[:4]}..." if self.access_token else None,
        }


@dataclass
class PostResult:
    """Result of a page post operation."""

    success: bool
    post_id: str | None = None
    post_url: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "post_id": self.post_id,
            "post_url": self.post_url,
            "error_message": self.error_message,
        }


@dataclass
class PageInfo:
    """Identity of the page a token belongs to."""

    page_id: str
    page_name: str | None = None


# Custom Exceptions
class SocialAdapterError(Exception):
    """Base exception for social adapter errors."""

    pass


class SocialAuthError(SocialAdapterError):
    """Raised when the page token is missing, invalid or expired."""

    pass


class SocialAPIError(SocialAdapterError):
    """Raised when the platform API returns an error."""

    pass


class SocialRateLimitError(SocialAdapterError):
    """Raised when the API rate limit is exceeded."""

    pass


class SocialValidationError(SocialAdapterError):
    """Raised when post content validation fails."""

    pass


class BaseSocialAdapter(ABC):
    """
    Abstract base class for page publishing adapters.

    Implementations post text or a single photo to a page and can check that
    a page token is still usable.
    """

    platform: SocialPlatform

    @abstractmethod
    async def verify_credentials(self, access_token: str) -> PageInfo:
        """
        Resolve the page behind *access_token*.

        Raises:
            SocialAuthError: If the token is rejected
        """
        pass

    @abstractmethod
    async def post_text(self, credentials: PageCredentials, text: str) -> PostResult:
        """
        Post text content to the page.

        Raises:
            SocialValidationError: If text exceeds character limit
            SocialAPIError: If post creation fails
            SocialRateLimitError: If rate limit is exceeded
        """
        pass

    @abstractmethod
    async def post_with_media(
        self, credentials: PageCredentials, text: str, image_url: str
    ) -> PostResult:
        """
        Post a photo with a caption to the page.

        Raises:
            SocialValidationError: If validation fails
            SocialAPIError: If post creation fails
            SocialRateLimitError: If rate limit is exceeded
        """
        pass

    @abstractmethod
    def get_character_limit(self) -> int:
        """Maximum characters allowed in a post."""
        pass

    def validate_text_length(self, text: str) -> None:
        """
        Validate text length against platform limit.

        Raises:
            SocialValidationError: If text exceeds limit
        """
        limit = self.get_character_limit()
        if len(text) > limit:
            raise SocialValidationError(
                f"Text exceeds {self.platform.value} character limit ({len(text)} > {limit})"
            )
