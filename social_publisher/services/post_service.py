# social_publisher/services/post_service.py
from typing import List, Optional, Tuple
import uuid

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.infrastructure.accounts_repo import AccountsRepository
from social_publisher.infrastructure.posts_repo import PostsRepository
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.models.account import Platform
from social_publisher.models.post import OutcomeStatus, Post, PostStatus
from social_publisher.models.types import utc_now
from social_publisher.platforms.facebook import FacebookAdapter
from social_publisher.schemas.post_schema import PostCreate, PostUpdate
from social_publisher.services.account_service import account_credential
from social_publisher.services.publish_service import PostLockedError, PublishOutcome, PublishService

logger = structlog.get_logger(__name__)

# statuses a user may still edit or delete
EDITABLE_STATUSES = {PostStatus.draft.value, PostStatus.scheduled.value, PostStatus.failed.value}


class PostNotFoundError(Exception):
    pass


class PostService:
    def __init__(
        self,
        session: AsyncSession,
        cipher: TokenCipher,
        publisher: Optional[PublishService] = None,
        facebook: Optional[FacebookAdapter] = None,
    ):
        self.session = session
        self.repo = PostsRepository(session)
        self.publisher = publisher
        self.facebook = facebook
        self.cipher = cipher

    async def _get(self, owner_id: uuid.UUID, post_id: uuid.UUID) -> Post:
        post = await self.repo.get_for_owner(owner_id, post_id)
        if not post:
            raise PostNotFoundError("post not found")
        return post

    async def create_post(self, owner_id: uuid.UUID, payload: PostCreate) -> Post:
        if payload.scheduled_date <= utc_now():
            raise ValueError("Scheduled date must be in the future")
        post = Post(
            owner_id=owner_id,
            caption=payload.caption,
            media=payload.media,
            platforms=list(payload.platforms),
            selected_pages=payload.selected_pages,
            scheduled_date=payload.scheduled_date,
            status=PostStatus.scheduled.value,
        )
        post = await self.repo.create(post)
        logger.info("post_scheduled", post_id=str(post.id), platforms=post.platforms, scheduled_date=post.scheduled_date.isoformat())
        return post

    async def get_post(self, owner_id: uuid.UUID, post_id: uuid.UUID) -> Post:
        return await self._get(owner_id, post_id)

    async def list_posts(
        self, owner_id: uuid.UUID, status: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Post], int]:
        return await self.repo.list_by_owner(owner_id, status=status, page=page, limit=limit)

    async def update_post(self, owner_id: uuid.UUID, post_id: uuid.UUID, payload: PostUpdate) -> Post:
        post = await self._get(owner_id, post_id)
        if post.status not in EDITABLE_STATUSES:
            raise PostLockedError(f"Cannot update a {post.status} post")

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "scheduled_date" in changes:
            if changes["scheduled_date"] <= utc_now():
                raise ValueError("Scheduled date must be in the future")
            # rescheduling a failed post puts it back in the queue
            post.status = PostStatus.scheduled.value
        for key, value in changes.items():
            setattr(post, key, list(value) if key == "platforms" else value)
        post = await self.repo.save(post)
        logger.info("post_updated", post_id=str(post.id), fields=sorted(changes))
        return post

    async def delete_post(self, owner_id: uuid.UUID, post_id: uuid.UUID) -> None:
        post = await self._get(owner_id, post_id)
        if post.status not in EDITABLE_STATUSES:
            raise PostLockedError(f"Cannot delete a {post.status} post")
        await self.repo.delete(post)
        logger.info("post_deleted", post_id=str(post_id))

    async def publish_now(self, owner_id: uuid.UUID, post_id: uuid.UUID) -> Tuple[Post, PublishOutcome]:
        if self.publisher is None:
            raise RuntimeError("PostService was built without a publisher")
        post = await self._get(owner_id, post_id)
        if not await self.repo.claim(post):
            raise PostLockedError(f"Only scheduled posts can be published (post is {post.status})")
        try:
            outcome = await self.publisher.publish_post(post)
        except Exception:
            # a crash must not leave the post stuck in publishing
            logger.exception("post_publish_crashed", post_id=str(post_id))
            await self.session.rollback()
            await self.repo.mark_failed(post_id)
            raise
        return post, outcome

    async def refresh_analytics(self, owner_id: uuid.UUID, post_id: uuid.UUID) -> Post:
        """Pull likes/comments/shares/reach for the Facebook copy of a published post."""
        if self.facebook is None:
            raise RuntimeError("PostService was built without a Facebook adapter")
        post = await self._get(owner_id, post_id)
        if post.status != PostStatus.published.value:
            raise ValueError("Can only refresh analytics for published posts")

        entry = next(
            (
                p for p in post.published_platforms or []
                if p.get("platform") == Platform.facebook.value
                and p.get("status") == OutcomeStatus.success.value
                and (p.get("platform_post_id") or "").strip()
            ),
            None,
        )
        if entry is None:
            raise ValueError("Analytics not available: this post has no Facebook publishing record")

        account = await AccountsRepository(self.session).get_active(owner_id, Platform.facebook.value)
        if account is None:
            raise ValueError("No active Facebook account found")

        platform_post_id = entry["platform_post_id"].strip()
        page_id = entry.get("page_id") or (platform_post_id.split("_", 1)[0] if "_" in platform_post_id else None)
        credential = account_credential(account, self.cipher)
        pages = await self.facebook.list_pages(credential.access_token)
        page = self.facebook.select_page(pages, page_id)
        if "_" not in platform_post_id:
            platform_post_id = f"{page.id}_{platform_post_id}"

        post.analytics = await self.facebook.fetch_post_stats(page, platform_post_id)
        post = await self.repo.save(post)
        logger.info("post_analytics_refreshed", post_id=str(post.id), **post.analytics)
        return post
