"""
Single-field AI generation routes.
"""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai import image_ai_service, quiz_ai_service
from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.schemas.generation import AIConfigResponse, FieldGenerateRequest
from api.utils import limit_exceeded_error
from core.plans import AI_GENERATION
from infrastructure.database.connection import get_db
from infrastructure.database.models import User
from services.generation_tracker import GenerationTracker
from services.usage_limits import UsageLimitExceeded, enforce_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/generate")
@limiter.limit(get_rate_limit("ai_generation"))
async def generate_field(
    request: Request,
    body: FieldGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate the value of one template field.

    With ``word_only`` only the answer word is returned.
    """
    try:
        await enforce_limit(db, current_user.id, AI_GENERATION)
    except UsageLimitExceeded as e:
        raise limit_exceeded_error(e)

    tracker = GenerationTracker(db)
    log = await tracker.log_start(
        user_id=current_user.id,
        resource_type="field",
        input_metadata={
            "field": body.field,
            "template_type": body.template_type,
            "language": body.language,
        },
    )
    started = time.monotonic()
    try:
        generated = await quiz_ai_service.generate_field(
            field=body.field,
            context=body.context,
            template_type=body.template_type,
            language=body.language,
            word_only=body.word_only,
        )
    except Exception as e:
        logger.error("Field generation failed for user %s: %s", current_user.id, e)
        await tracker.log_failure(log.id, str(e), duration_ms=int((time.monotonic() - started) * 1000))
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to generate content",
        )

    await tracker.log_success(
        log.id,
        ai_model=quiz_ai_service.model if quiz_ai_service.is_configured else None,
        duration_ms=int((time.monotonic() - started) * 1000),
        fallback=not quiz_ai_service.is_configured,
    )
    await db.commit()

    if body.word_only:
        return {"answer": generated["answer"].strip().upper()}
    return generated


@router.get("/config", response_model=AIConfigResponse)
async def get_ai_config(current_user: User = Depends(get_current_user)):
    return AIConfigResponse(
        anthropic_configured=quiz_ai_service.is_configured,
        replicate_configured=image_ai_service.is_configured,
        model=quiz_ai_service.model,
    )
