"""
Organization access dependencies for multi-tenancy.

Non-members get 404 so organization ids are not disclosed; members without
the required role get 403.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from infrastructure.database.connection import get_db
from infrastructure.database.models.organization import (
    MembershipStatus,
    Organization,
    OrganizationMember,
)
from infrastructure.database.models.user import User


async def get_organization_by_id(organization_id: str, db: AsyncSession) -> Organization:
    """
    Raises:
        HTTPException: 404 if the organization does not exist
    """
    organization = await db.get(Organization, organization_id)
    if not organization:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )
    return organization


async def get_organization_member(
    organization_id: str,
    user_id: str,
    db: AsyncSession,
) -> OrganizationMember:
    """
    Accepted membership of *user_id* in the organization.

    Raises:
        HTTPException: 404 if the user is not an accepted member
    """
    stmt = select(OrganizationMember).where(
        OrganizationMember.organization_id == organization_id,
        OrganizationMember.user_id == user_id,
        OrganizationMember.status == MembershipStatus.ACCEPTED.value,
    )
    result = await db.execute(stmt)
    member = result.scalar_one_or_none()

    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )

    return member


async def require_organization_membership(
    organization_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrganizationMember:
    """
    Dependency to require organization membership.

    Usage:
        @router.get("/organizations/{organization_id}/something")
        async def get_something(
            member: Annotated[OrganizationMember, Depends(require_organization_membership)],
        ):
            return {"organization_id": member.organization_id, "role": member.role}
    """
    return await get_organization_member(organization_id, current_user.id, db)


async def require_organization_manager(
    organization_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrganizationMember:
    """
    Dependency to require the OWNER or ADMIN role.

    Raises:
        HTTPException: 403 if the member is neither owner nor admin
    """
    member = await get_organization_member(organization_id, current_user.id, db)

    if not member.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires admin or owner privileges",
        )

    return member


async def require_organization_owner(
    organization_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrganizationMember:
    member = await get_organization_member(organization_id, current_user.id, db)

    if not member.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires organization owner privileges",
        )

    return member
