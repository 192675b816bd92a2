"""
Facebook page connection settings.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social import SocialAdapterError, facebook_adapter
from api.routes.auth import get_current_user
from api.schemas.facebook import (
    FacebookSettingsRequest,
    FacebookSettingsResponse,
    FacebookTokenTestRequest,
)
from core.security.encryption import encrypt_credential
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import FacebookSettings, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings/facebook", tags=["settings"])


@router.get("", response_model=FacebookSettingsResponse)
async def get_facebook_settings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(FacebookSettings)
        .where(FacebookSettings.user_id == current_user.id)
        .order_by(FacebookSettings.created_at.desc())
        .limit(1)
    )
    fb_settings = result.scalar_one_or_none()
    if fb_settings is None:
        return FacebookSettingsResponse(is_connected=False)
    return FacebookSettingsResponse(
        is_connected=fb_settings.is_connected,
        page_id=fb_settings.page_id,
        page_name=fb_settings.page_name,
    )


@router.post("")
async def save_facebook_settings(
    body: FacebookSettingsRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Connect a Facebook page. The page token is stored encrypted and replaces
    any previous connection.
    """
    if not body.page_id or not body.page_access_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: page_id and page_access_token are required",
        )

    await db.execute(delete(FacebookSettings).where(FacebookSettings.user_id == current_user.id))
    fb_settings = FacebookSettings(
        user_id=current_user.id,
        page_id=body.page_id,
        page_name=body.page_name,
        page_access_token_encrypted=encrypt_credential(body.page_access_token, settings.secret_key),
        is_connected=True,
    )
    db.add(fb_settings)
    await db.commit()

    logger.info("User %s connected Facebook page %s", current_user.id, body.page_id)
    return {
        "success": True,
        "is_connected": True,
        "page_id": fb_settings.page_id,
        "page_name": fb_settings.page_name,
    }


@router.delete("")
async def disconnect_facebook(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await db.execute(delete(FacebookSettings).where(FacebookSettings.user_id == current_user.id))
    await db.commit()
    return {"success": True}


@router.post("/test")
async def test_facebook_token(
    body: FacebookTokenTestRequest,
    current_user: User = Depends(get_current_user),
):
    """
    Check a page access token against the Graph API without saving it.
    """
    try:
        page = await facebook_adapter.verify_credentials(body.page_access_token)
    except SocialAdapterError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "page_id": page.page_id, "page_name": page.page_name}
