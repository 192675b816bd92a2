"""
Plan usage routes for users and organizations.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_organization import require_organization_membership
from api.routes.auth import get_current_user
from api.schemas.usage import OrganizationUsageResponse, UsageResponse
from core.plans import remaining
from infrastructure.database.connection import get_db
from infrastructure.database.models import OrganizationMember, User
from services import usage_limits

router = APIRouter(tags=["usage"])


@router.get("/usage", response_model=UsageResponse)
async def get_my_usage(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Limits, usage and remaining units for the current period.
    """
    limits = await usage_limits.get_user_limits(db, current_user.id)
    usage = await usage_limits.get_user_usage(db, current_user.id)
    return UsageResponse(
        period=usage_limits.current_period(),
        limits=limits,
        usage=usage,
        remaining={
            resource: remaining(limit, usage.get(resource, 0)) for resource, limit in limits.items()
        },
    )


@router.get("/organizations/{organization_id}/usage", response_model=OrganizationUsageResponse)
async def get_organization_usage(
    organization_id: str,
    member: OrganizationMember = Depends(require_organization_membership),
    db: AsyncSession = Depends(get_db),
):
    return OrganizationUsageResponse(
        organization_id=organization_id,
        limits=await usage_limits.get_organization_limits(db, organization_id),
        usage=await usage_limits.get_organization_usage(db, organization_id),
        checks=await usage_limits.check_organization_limits(db, organization_id),
    )
