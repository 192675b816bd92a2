"""
Per-client request throttling (slowapi).

Clients are keyed on their public IP. Counters live in Redis when REDIS_URL
is set so every worker shares them, otherwise in process memory.
"""

import ipaddress
import logging
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    "register": "3/minute",
    "login": "5/minute",
    "refresh": "10/minute",
    "logout": "20/minute",
    "ai_generation": "10/minute",
    "publish": "10/minute",
    "cron": "10/minute",
    "default": "100/minute",
}

# Headers checked in order; proxies put the originating client first
_FORWARDING_HEADERS = ("x-forwarded-for", "x-real-ip")


def _public_ip(raw: str) -> Optional[str]:
    """The address in *raw* if it parses and is routable, else None."""
    try:
        address = ipaddress.ip_address(raw.strip())
    except ValueError:
        return None
    # Private and loopback values in forwarding headers are trivially spoofed
    if address.is_private or address.is_loopback or address.is_link_local:
        return None
    return str(address)


def client_key(request: Request) -> str:
    for header in _FORWARDING_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        candidate = _public_ip(value.split(",")[0])
        if candidate:
            return candidate
    return get_remote_address(request)


def get_rate_limit(name: str) -> str:
    """Limit string for a named route group, falling back to the global default."""
    return RATE_LIMITS.get(name, RATE_LIMITS["default"])


if settings.redis_url:
    _storage_uri = settings.redis_url
else:
    _storage_uri = "memory://"
    if settings.is_production:
        logger.critical("REDIS_URL is not set: rate limits are per-process only")
    else:
        logger.warning("Rate limiter using in-memory storage")

# default_limits is enforced on every route by SlowAPIMiddleware
limiter = Limiter(
    key_func=client_key,
    storage_uri=_storage_uri,
    default_limits=[get_rate_limit("default")],
)
