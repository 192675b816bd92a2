"""
Admin organization management API routes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from api.routes.organizations import organization_counts, slug_taken
from api.schemas.admin import (
    AdminOrganizationCreateRequest,
    AdminOrganizationItem,
    AdminOrganizationListResponse,
    AdminPagination,
    SubscriptionResponse,
)
from api.utils import escape_like, total_pages
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    MemberRole,
    MembershipStatus,
    Organization,
    OrganizationMember,
    Subscription,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/organizations", tags=["Admin - Organizations"])

SORT_COLUMNS = {
    "name": Organization.name,
    "slug": Organization.slug,
    "created_at": Organization.created_at,
}


async def _organization_item(db: AsyncSession, organization: Organization) -> AdminOrganizationItem:
    result = await db.execute(
        select(Subscription).where(Subscription.organization_id == organization.id)
    )
    subscription = result.scalars().unique().one_or_none()
    return AdminOrganizationItem(
        id=organization.id,
        name=organization.name,
        slug=organization.slug,
        owner_id=organization.owner_id,
        created_at=organization.created_at,
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
        **(await organization_counts(db, organization.id)),
    )


@router.get("", response_model=AdminOrganizationListResponse)
async def list_organizations(
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    sort_direction: str = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """List all organizations with member and content counts."""
    if sort_by not in SORT_COLUMNS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sort_by must be one of: {', '.join(SORT_COLUMNS)}",
        )

    query = select(Organization)
    count_query = select(func.count(Organization.id))
    if search:
        pattern = f"%{escape_like(search)}%"
        condition = or_(
            Organization.name.ilike(pattern, escape="\\"),
            Organization.slug.ilike(pattern, escape="\\"),
        )
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = (await db.execute(count_query)).scalar() or 0

    order = asc if sort_direction.lower() == "asc" else desc
    query = query.order_by(order(SORT_COLUMNS[sort_by]))
    query = query.offset((page - 1) * page_size).limit(page_size)

    result = await db.execute(query)
    organizations = [
        await _organization_item(db, organization) for organization in result.scalars().all()
    ]

    pages = total_pages(total, page_size)
    return AdminOrganizationListResponse(
        organizations=organizations,
        pagination=AdminPagination(
            page=page,
            page_size=page_size,
            total_count=total,
            total_pages=pages,
            has_more=page < pages,
        ),
    )


@router.post("", response_model=AdminOrganizationItem, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: AdminOrganizationCreateRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an organization on behalf of a user. Without ``owner_id`` the
    calling admin becomes the owner.
    """
    if await slug_taken(db, body.slug):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization slug already exists",
        )

    owner_id = admin_user.id
    if body.owner_id:
        if not await db.get(User, body.owner_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Owner user not found",
            )
        owner_id = body.owner_id

    organization = Organization(
        name=body.name,
        slug=body.slug,
        description=body.description,
        owner_id=owner_id,
    )
    db.add(organization)
    await db.flush()

    db.add(
        OrganizationMember(
            organization_id=organization.id,
            user_id=owner_id,
            role=MemberRole.OWNER.value,
            status=MembershipStatus.ACCEPTED.value,
        )
    )
    await db.commit()
    await db.refresh(organization)

    logger.info("Admin %s created organization %s for %s", admin_user.id, organization.id, owner_id)
    return await _organization_item(db, organization)
