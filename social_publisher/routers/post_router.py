# social_publisher/routers/post_router.py
import math
import uuid
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.dependencies.auth import get_current_user_id
from social_publisher.dependencies.db import get_adapters, get_cipher, get_session_dep
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.platforms.base import PlatformAdapter, PlatformApiError
from social_publisher.schemas.post_schema import PostCreate, PostPage, PostRead, PostUpdate, PublishResultRead
from social_publisher.services.post_service import PostNotFoundError, PostService
from social_publisher.services.publish_service import PostLockedError, PublishService

router = APIRouter(prefix="/posts", tags=["posts"])


def get_post_service(
    request: Request,
    session: AsyncSession = Depends(get_session_dep),
    adapters: Dict[str, PlatformAdapter] = Depends(get_adapters),
    cipher: TokenCipher = Depends(get_cipher),
) -> PostService:
    publisher = PublishService(session, adapters, request.app.state.media, cipher)
    return PostService(session, cipher, publisher=publisher, facebook=adapters.get("facebook"))


@router.post("/", response_model=PostRead, status_code=status.HTTP_201_CREATED)
async def create_post(payload: PostCreate, svc: PostService = Depends(get_post_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        return await svc.create_post(owner_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/", response_model=PostPage)
async def list_posts(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    svc: PostService = Depends(get_post_service),
    owner_id: uuid.UUID = Depends(get_current_user_id),
):
    posts, total = await svc.list_posts(owner_id, status=status_filter, page=page, limit=limit)
    return {"posts": posts, "page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


@router.get("/{post_id}", response_model=PostRead)
async def get_post(post_id: uuid.UUID, svc: PostService = Depends(get_post_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        return await svc.get_post(owner_id, post_id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.patch("/{post_id}", response_model=PostRead)
async def update_post(post_id: uuid.UUID, payload: PostUpdate, svc: PostService = Depends(get_post_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        return await svc.update_post(owner_id, post_id, payload)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PostLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: uuid.UUID, svc: PostService = Depends(get_post_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        await svc.delete_post(owner_id, post_id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PostLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/{post_id}/publish", response_model=PublishResultRead)
async def publish_post(post_id: uuid.UUID, svc: PostService = Depends(get_post_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        post, outcome = await svc.publish_now(owner_id, post_id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PostLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"success": outcome.success, "results": outcome.results, "errors": outcome.errors, "post": post}


@router.post("/{post_id}/analytics/refresh", response_model=PostRead)
async def refresh_analytics(post_id: uuid.UUID, svc: PostService = Depends(get_post_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        return await svc.refresh_analytics(owner_id, post_id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PlatformApiError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
