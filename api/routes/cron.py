"""
Cron endpoints called by an external scheduler.
"""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.utils import connection_error
from core.retry import ConnectionRetryError, with_connection_retry
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from services.post_publisher import post_publisher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


async def verify_cron_request(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    ``Authorization: Bearer <CRON_SECRET>``. Without a configured secret an
    admin user token is accepted instead.
    """
    if settings.cron_secret:
        token = ""
        if authorization and authorization.startswith("Bearer "):
            token = authorization.split(" ", 1)[1]
        if not token or not hmac.compare_digest(token, settings.cron_secret):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid cron secret",
            )
        return

    try:
        user = await get_current_user(request, authorization, db)
    except HTTPException:
        user = None
    if user is None or not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.post("/publish-posts", dependencies=[Depends(verify_cron_request)])
@limiter.limit(get_rate_limit("cron"))
async def publish_posts(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Publish due scheduled posts.
    """
    try:
        result = await with_connection_retry(
            lambda: post_publisher.publish_due_posts(db, settings.scheduler_batch_size)
        )
    except ConnectionRetryError as e:
        raise connection_error(e)

    logger.info("Cron publish processed %d posts", result["processed"])
    return result
