"""
Collection routes: named groups of content library items.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from api.routes.content_usage import get_user_content
from api.schemas.content import (
    CollectionCreateRequest,
    CollectionDetailResponse,
    CollectionItemRequest,
    CollectionItemResponse,
    CollectionResponse,
)
from infrastructure.database.connection import get_db
from infrastructure.database.models import Collection, CollectionItem, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/collections", tags=["content"])


async def get_user_collection(db: AsyncSession, user: User, collection_id: str) -> Collection:
    result = await db.execute(
        select(Collection).where(Collection.id == collection_id, Collection.user_id == user.id)
    )
    collection = result.scalar_one_or_none()
    if not collection:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Collection not found",
        )
    return collection


def _collection_response(collection: Collection, item_count: int) -> CollectionResponse:
    return CollectionResponse(
        id=collection.id,
        name=collection.name,
        description=collection.description,
        item_count=item_count,
        created_at=collection.created_at,
    )


@router.get("", response_model=List[CollectionResponse])
async def list_collections(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item_counts = (
        select(CollectionItem.collection_id, func.count().label("item_count"))
        .group_by(CollectionItem.collection_id)
        .subquery()
    )
    result = await db.execute(
        select(Collection, func.coalesce(item_counts.c.item_count, 0))
        .outerjoin(item_counts, item_counts.c.collection_id == Collection.id)
        .where(Collection.user_id == current_user.id)
        .order_by(Collection.created_at.desc())
    )
    return [_collection_response(collection, count) for collection, count in result.all()]


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    body: CollectionCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    collection = Collection(
        user_id=current_user.id,
        name=body.name.strip(),
        description=body.description,
    )
    db.add(collection)
    await db.commit()
    await db.refresh(collection)

    logger.info("User %s created collection %s", current_user.id, collection.id)
    return _collection_response(collection, 0)


@router.get("/{collection_id}/items", response_model=CollectionDetailResponse)
async def get_collection_items(
    collection_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    The collection with its items, newest first.
    """
    collection = await get_user_collection(db, current_user, collection_id)
    result = await db.execute(
        select(CollectionItem)
        .where(CollectionItem.collection_id == collection.id)
        .order_by(CollectionItem.created_at.desc())
    )
    return CollectionDetailResponse(
        id=collection.id,
        name=collection.name,
        description=collection.description,
        items=[CollectionItemResponse.model_validate(item) for item in result.scalars().unique().all()],
    )


@router.post(
    "/{collection_id}/items",
    response_model=CollectionItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_collection_item(
    collection_id: str,
    body: CollectionItemRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    collection = await get_user_collection(db, current_user, collection_id)
    content = await get_user_content(db, current_user, body.content_id)

    existing = await db.execute(
        select(CollectionItem.id).where(
            CollectionItem.collection_id == collection.id,
            CollectionItem.content_id == content.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Item already exists in collection",
        )

    item = CollectionItem(collection_id=collection.id, content=content)
    db.add(item)
    await db.commit()
    return item


@router.delete("/{collection_id}/items", status_code=status.HTTP_204_NO_CONTENT)
async def remove_collection_item(
    collection_id: str,
    content_id: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove *content_id* from the collection. Removing an absent item is not an error."""
    collection = await get_user_collection(db, current_user, collection_id)
    await db.execute(
        delete(CollectionItem).where(
            CollectionItem.collection_id == collection.id,
            CollectionItem.content_id == content_id,
        )
    )
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
