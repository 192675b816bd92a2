"""
Admin authentication dependencies.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from api.routes.auth import get_current_user
from infrastructure.database.models.user import User


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency to verify current user is an admin.

    Raises:
        HTTPException: 403 if user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required. You do not have permission to access this resource.",
        )

    return current_user
