"""
Organization and membership API routes.
"""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_organization import (
    get_organization_by_id,
    require_organization_manager,
    require_organization_membership,
    require_organization_owner,
)
from api.routes.auth import get_current_user
from api.schemas.organization import (
    MemberAddRequest,
    MemberResponse,
    MemberUpdateRequest,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)
from api.utils import escape_like
from core.plans import TEAM_MEMBERS
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    MemberRole,
    MembershipStatus,
    Organization,
    OrganizationMember,
    Quiz,
    Template,
    User,
)
from infrastructure.database.models.organization import MAX_OWNED_ORGANIZATIONS
from services.usage_limits import get_organization_limits

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


async def organization_counts(db: AsyncSession, organization_id: str) -> dict:
    """Accepted members, templates and quizzes of an organization."""
    members = await db.execute(
        select(func.count(OrganizationMember.id)).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.status == MembershipStatus.ACCEPTED.value,
        )
    )
    templates = await db.execute(
        select(func.count(Template.id)).where(Template.organization_id == organization_id)
    )
    quizzes = await db.execute(
        select(func.count(Quiz.id)).where(Quiz.organization_id == organization_id)
    )
    return {
        "member_count": members.scalar() or 0,
        "template_count": templates.scalar() or 0,
        "quiz_count": quizzes.scalar() or 0,
    }


async def build_organization_response(
    db: AsyncSession, organization: Organization, role: Optional[str] = None
) -> OrganizationResponse:
    response = OrganizationResponse.model_validate(organization)
    response.role = role
    for key, value in (await organization_counts(db, organization.id)).items():
        setattr(response, key, value)
    return response


async def slug_taken(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Organization.id).where(Organization.slug == slug))
    return result.scalar_one_or_none() is not None


def member_response(member: OrganizationMember) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        organization_id=member.organization_id,
        user_id=member.user_id,
        role=member.role,
        status=member.status,
        created_at=member.created_at,
        email=member.user.email if member.user else None,
        name=member.user.name if member.user else None,
    )


async def _get_member(db: AsyncSession, organization_id: str, member_id: str) -> OrganizationMember:
    result = await db.execute(
        select(OrganizationMember).where(
            OrganizationMember.id == member_id,
            OrganizationMember.organization_id == organization_id,
        )
    )
    member = result.scalar_one_or_none()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found",
        )
    return member


@router.get("", response_model=List[OrganizationResponse])
async def list_organizations(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    search: Optional[str] = None,
    role: Optional[str] = Query(None),
):
    """
    Organizations the current user belongs to, with their role.
    """
    query = (
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(
            OrganizationMember.user_id == current_user.id,
            OrganizationMember.status != MembershipStatus.PENDING.value,
        )
    )
    if search:
        pattern = f"%{escape_like(search)}%"
        query = query.where(
            or_(
                Organization.name.ilike(pattern, escape="\\"),
                Organization.slug.ilike(pattern, escape="\\"),
            )
        )
    if role:
        query = query.where(OrganizationMember.role == role.upper())
    query = query.order_by(Organization.created_at.desc())

    result = await db.execute(query)
    return [
        await build_organization_response(db, organization, member_role)
        for organization, member_role in result.all()
    ]


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: OrganizationCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Create an organization owned by the current user.
    """
    if await slug_taken(db, data.slug):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization slug already exists",
        )

    owned = await db.execute(
        select(func.count(Organization.id)).where(Organization.owner_id == current_user.id)
    )
    if (owned.scalar() or 0) >= MAX_OWNED_ORGANIZATIONS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can own at most {MAX_OWNED_ORGANIZATIONS} organizations",
        )

    organization = Organization(
        name=data.name,
        slug=data.slug,
        description=data.description,
        website=data.website,
        logo_url=data.logo_url,
        owner_id=current_user.id,
    )
    db.add(organization)
    await db.flush()

    db.add(
        OrganizationMember(
            organization_id=organization.id,
            user_id=current_user.id,
            role=MemberRole.OWNER.value,
            status=MembershipStatus.ACCEPTED.value,
        )
    )
    await db.commit()
    await db.refresh(organization)

    logger.info("User %s created organization %s", current_user.id, organization.id)
    return await build_organization_response(db, organization, MemberRole.OWNER.value)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    member: Annotated[OrganizationMember, Depends(require_organization_membership)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    organization = await get_organization_by_id(organization_id, db)
    return await build_organization_response(db, organization, member.role)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    data: OrganizationUpdate,
    member: Annotated[OrganizationMember, Depends(require_organization_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    organization = await get_organization_by_id(organization_id, db)

    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(organization, field, value)

    await db.commit()
    await db.refresh(organization)
    return await build_organization_response(db, organization, member.role)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: str,
    member: Annotated[OrganizationMember, Depends(require_organization_owner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    organization = await get_organization_by_id(organization_id, db)
    await db.delete(organization)
    await db.commit()
    logger.info("Deleted organization %s", organization_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Members
# ============================================================================


@router.get("/{organization_id}/members", response_model=List[MemberResponse])
async def list_members(
    organization_id: str,
    member: Annotated[OrganizationMember, Depends(require_organization_membership)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(
        select(OrganizationMember)
        .where(OrganizationMember.organization_id == organization_id)
        .order_by(OrganizationMember.created_at.asc())
    )
    return [member_response(m) for m in result.scalars().unique().all()]


@router.post(
    "/{organization_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    organization_id: str,
    data: MemberAddRequest,
    manager: Annotated[OrganizationMember, Depends(require_organization_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Add an existing user, found by email or id, to the organization.
    """
    if not data.email and not data.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either email or user_id is required",
        )

    if data.user_id:
        user = await db.get(User, data.user_id)
    else:
        result = await db.execute(select(User).where(User.email == data.email.strip().lower()))
        user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    existing = await db.execute(
        select(OrganizationMember.id).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user.id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already a member of this organization",
        )

    limits = await get_organization_limits(db, organization_id)
    members = await organization_counts(db, organization_id)
    member_limit = limits[TEAM_MEMBERS]
    if member_limit != -1 and members["member_count"] >= member_limit:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Organization member limit reached ({member_limit})",
        )

    member = OrganizationMember(
        organization_id=organization_id,
        user_id=user.id,
        role=data.role,
        status=MembershipStatus.ACCEPTED.value,
    )
    db.add(member)
    await db.commit()
    await db.refresh(member)
    return member_response(member)


@router.patch("/{organization_id}/members/{member_id}", response_model=MemberResponse)
async def update_member_role(
    organization_id: str,
    member_id: str,
    data: MemberUpdateRequest,
    manager: Annotated[OrganizationMember, Depends(require_organization_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    member = await _get_member(db, organization_id, member_id)
    role = data.role.upper()

    if member.is_owner or role == MemberRole.OWNER.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The owner role cannot be changed or assigned",
        )
    if role not in (MemberRole.ADMIN.value, MemberRole.MEMBER.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role must be ADMIN or MEMBER",
        )

    member.role = role
    await db.commit()
    await db.refresh(member)
    return member_response(member)


@router.delete("/{organization_id}/members/{member_id}")
async def remove_member(
    organization_id: str,
    member_id: str,
    current_member: Annotated[OrganizationMember, Depends(require_organization_membership)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Remove a member. Managers may remove anyone but the owner; members may
    remove themselves.
    """
    member = await _get_member(db, organization_id, member_id)

    if member.is_owner:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The organization owner cannot be removed",
        )
    if member.id != current_member.id and not current_member.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires admin or owner privileges",
        )

    await db.delete(member)
    await db.commit()
    return {"success": True}
