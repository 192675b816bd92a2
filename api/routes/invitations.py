"""
Organization invitation routes.

Managers invite by email; the invitee looks the invitation up by token
(public) and accepts it while signed in with the invited address.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_organization import require_organization_manager
from api.routes.auth import get_current_user
from api.schemas.organization import (
    InvitationCreateRequest,
    InvitationListResponse,
    InvitationPublicResponse,
    InvitationResponse,
)
from core.plans import TEAM_MEMBERS
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    InvitationStatus,
    MembershipStatus,
    OrganizationInvitation,
    OrganizationMember,
    User,
)
from services.usage_limits import get_organization_limits

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invitations"])


async def _get_invitation_by_token(db: AsyncSession, token: str) -> OrganizationInvitation:
    result = await db.execute(
        select(OrganizationInvitation).where(OrganizationInvitation.token == token)
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invitation not found",
        )
    return invitation


async def _ensure_invitation_usable(db: AsyncSession, invitation: OrganizationInvitation) -> None:
    """
    Raises:
        HTTPException: 400 if the invitation is no longer pending or has expired
    """
    if not invitation.is_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invitation is {invitation.status.lower()}",
        )
    if invitation.is_expired:
        invitation.status = InvitationStatus.EXPIRED.value
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invitation has expired",
        )


@router.get(
    "/organizations/{organization_id}/invitations",
    response_model=InvitationListResponse,
)
async def list_invitations(
    organization_id: str,
    manager: Annotated[OrganizationMember, Depends(require_organization_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(
        select(OrganizationInvitation)
        .where(
            OrganizationInvitation.organization_id == organization_id,
            OrganizationInvitation.status == InvitationStatus.PENDING.value,
        )
        .order_by(OrganizationInvitation.created_at.desc())
    )
    return InvitationListResponse(invitations=result.scalars().unique().all())


@router.post(
    "/organizations/{organization_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    organization_id: str,
    data: InvitationCreateRequest,
    manager: Annotated[OrganizationMember, Depends(require_organization_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Invite an email address. Pending invitations count towards the member limit.
    """
    existing_member = await db.execute(
        select(OrganizationMember.id)
        .join(User, User.id == OrganizationMember.user_id)
        .where(
            OrganizationMember.organization_id == organization_id,
            User.email == data.email,
        )
    )
    if existing_member.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already a member of this organization",
        )

    pending = await db.execute(
        select(OrganizationInvitation.id).where(
            OrganizationInvitation.organization_id == organization_id,
            OrganizationInvitation.email == data.email,
            OrganizationInvitation.status == InvitationStatus.PENDING.value,
        )
    )
    if pending.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A pending invitation already exists for this email",
        )

    member_count = (
        await db.execute(
            select(func.count(OrganizationMember.id)).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.status == MembershipStatus.ACCEPTED.value,
            )
        )
    ).scalar() or 0
    pending_count = (
        await db.execute(
            select(func.count(OrganizationInvitation.id)).where(
                OrganizationInvitation.organization_id == organization_id,
                OrganizationInvitation.status == InvitationStatus.PENDING.value,
            )
        )
    ).scalar() or 0
    max_members = (await get_organization_limits(db, organization_id))[TEAM_MEMBERS]
    if max_members != -1 and member_count + pending_count >= max_members:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Organization member limit reached ({max_members})",
        )

    invitation = OrganizationInvitation(
        organization_id=organization_id,
        invited_by=manager.user_id,
        email=data.email,
        role=data.role,
    )
    db.add(invitation)
    await db.commit()
    await db.refresh(invitation)

    logger.info("Organization %s invited %s", organization_id, data.email)
    return invitation


@router.delete("/organizations/{organization_id}/invitations/{invitation_id}")
async def revoke_invitation(
    organization_id: str,
    invitation_id: str,
    manager: Annotated[OrganizationMember, Depends(require_organization_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(
        select(OrganizationInvitation).where(
            OrganizationInvitation.id == invitation_id,
            OrganizationInvitation.organization_id == organization_id,
        )
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invitation not found",
        )

    invitation.status = InvitationStatus.REVOKED.value
    await db.commit()
    return {"success": True}


@router.get("/invitations/{token}", response_model=InvitationPublicResponse)
async def get_invitation(
    token: str,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    invitation = await _get_invitation_by_token(db, token)
    await _ensure_invitation_usable(db, invitation)
    return InvitationPublicResponse(
        organization_id=invitation.organization_id,
        organization_name=invitation.organization.name,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        expires_at=invitation.expires_at,
    )


@router.post("/invitations/{token}/accept")
async def accept_invitation(
    token: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Accept an invitation addressed to the current user's email.
    """
    invitation = await _get_invitation_by_token(db, token)
    await _ensure_invitation_usable(db, invitation)

    if invitation.email.lower() != current_user.email.lower():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This invitation was sent to a different email address",
        )

    result = await db.execute(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == invitation.organization_id,
            OrganizationMember.user_id == current_user.id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        member = OrganizationMember(
            organization_id=invitation.organization_id,
            user_id=current_user.id,
            role=invitation.role,
        )
        db.add(member)
    member.status = MembershipStatus.ACCEPTED.value

    invitation.status = InvitationStatus.ACCEPTED.value
    invitation.accepted_at = datetime.now(timezone.utc)
    await db.commit()

    logger.info("User %s joined organization %s", current_user.id, invitation.organization_id)
    return {
        "success": True,
        "organization_id": invitation.organization_id,
        "role": member.role,
    }
