"""
Shared API utility functions.
"""

import math

from fastapi import HTTPException, status

from services.usage_limits import UsageLimitExceeded


def escape_like(value: str) -> str:
    """Escape LIKE wildcards for safe use in SQL LIKE/ILIKE patterns."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


def limit_exceeded_error(exc: UsageLimitExceeded) -> HTTPException:
    """403 carrying the LIMIT_EXCEEDED detail of *exc*."""
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.to_detail())


def connection_error(exc: Exception) -> HTTPException:
    """503 returned when database retries are exhausted."""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "code": "CONNECTION_ERROR",
            "message": "Database connection error, please retry",
        },
    )
