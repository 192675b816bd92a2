"""
Social page publishing adapters.
"""

from .base import (
    BaseSocialAdapter,
    SocialPlatform,
    PageCredentials,
    PageInfo,
    PostResult,
    SocialAdapterError,
    SocialAuthError,
    SocialAPIError,
    SocialRateLimitError,
    SocialValidationError,
)
from .facebook_adapter import FacebookAdapter


# Shared instance used by routes and the publisher
facebook_adapter = FacebookAdapter()


__all__ = [
    "BaseSocialAdapter",
    "SocialPlatform",
    "PageCredentials",
    "PageInfo",
    "PostResult",
    "SocialAdapterError",
    "SocialAuthError",
    "SocialAPIError",
    "SocialRateLimitError",
    "SocialValidationError",
    "FacebookAdapter",
    "facebook_adapter",
]
