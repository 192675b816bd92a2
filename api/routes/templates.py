"""
Quiz template API routes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_organization import get_organization_member
from api.routes.auth import get_current_user
from api.schemas.quiz import TemplateCreateRequest, TemplateResponse, TemplateUpdateRequest
from api.utils import limit_exceeded_error
from core.cache import template_cache
from core.plans import TEMPLATES
from infrastructure.database.connection import get_db
from infrastructure.database.models import Quiz, ScheduledPost, Template, User
from services.usage_limits import UsageLimitExceeded, enforce_limit, increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])


def _cache_key(user_id: str, quiz_type: Optional[str]) -> str:
    return f"{user_id}:{quiz_type or '*'}"


def invalidate_template_cache(user_id: str) -> None:
    template_cache.delete_prefix(f"{user_id}:")


async def get_user_template(db: AsyncSession, user: User, template_id: str) -> Template:
    """
    Raises:
        HTTPException: 404 if the template does not exist or belongs to someone else
    """
    result = await db.execute(
        select(Template).where(Template.id == template_id, Template.user_id == user.id)
    )
    template = result.scalar_one_or_none()
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found",
        )
    return template


@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    quiz_type: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the user's templates, newest first.
    """
    key = _cache_key(current_user.id, quiz_type)
    cached = template_cache.get(key)
    if cached is not None:
        return cached

    query = select(Template).where(Template.user_id == current_user.id)
    if quiz_type:
        query = query.where(Template.quiz_type == quiz_type)
    query = query.order_by(Template.created_at.desc())

    result = await db.execute(query)
    templates = [TemplateResponse.model_validate(t) for t in result.scalars().all()]
    template_cache.set(key, templates)
    return templates


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    body: TemplateCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await enforce_limit(db, current_user.id, TEMPLATES)
    except UsageLimitExceeded as e:
        raise limit_exceeded_error(e)

    if body.organization_id:
        await get_organization_member(body.organization_id, current_user.id, db)

    template = Template(
        user_id=current_user.id,
        organization_id=body.organization_id,
        name=body.name,
        description=body.description,
        html=body.html,
        css=body.css,
        quiz_type=body.quiz_type,
        variables=body.variables,
    )
    db.add(template)
    await increment_usage(db, current_user.id, TEMPLATES)
    await db.commit()
    await db.refresh(template)

    invalidate_template_cache(current_user.id)
    logger.info("User %s created template %s", current_user.id, template.id)
    return template


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_template(db, current_user, template_id)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    body: TemplateUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update a template. Only the fields sent are changed.
    """
    template = await get_user_template(db, current_user, template_id)

    update_data = body.model_dump(exclude_unset=True)
    if "variables" in update_data and not update_data["variables"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="variables must be a non-empty object",
        )
    for field, value in update_data.items():
        if field in ("name", "html") and value is None:
            continue
        setattr(template, field, value)

    await db.commit()
    await db.refresh(template)
    invalidate_template_cache(current_user.id)
    return template


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a template together with its quizzes and their scheduled posts.
    """
    template = await get_user_template(db, current_user, template_id)

    quiz_ids = select(Quiz.id).where(Quiz.template_id == template.id)
    await db.execute(delete(ScheduledPost).where(ScheduledPost.quiz_id.in_(quiz_ids)))
    await db.execute(delete(Quiz).where(Quiz.template_id == template.id))
    await db.delete(template)
    await db.commit()

    invalidate_template_cache(current_user.id)
    logger.info("User %s deleted template %s", current_user.id, template_id)
    return {"message": "Template and associated quizzes deleted successfully"}
