# social_publisher/infrastructure/posts_repo.py
from typing import Optional, List, Tuple
from datetime import datetime
import uuid

from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.models.post import Post, PostStatus
from social_publisher.models.types import utc_now


class PostsRepository:
    """
    Repository for Post entity. Callers own the session; methods that write commit.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, post: Post) -> Post:
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def save(self, post: Post) -> Post:
        post.updated_at = utc_now()
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def delete(self, post: Post) -> None:
        await self.session.delete(post)
        await self.session.commit()

    async def get_by_id(self, post_id: uuid.UUID) -> Optional[Post]:
        q = select(Post).where(Post.id == post_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_for_owner(self, owner_id: uuid.UUID, post_id: uuid.UUID) -> Optional[Post]:
        q = select(Post).where(Post.id == post_id, Post.owner_id == owner_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Post], int]:
        """Newest scheduled date first, plus the total count for pagination."""
        q = select(Post).where(Post.owner_id == owner_id)
        count_q = select(func.count()).select_from(Post).where(Post.owner_id == owner_id)
        if status:
            q = q.where(Post.status == status)
            count_q = count_q.where(Post.status == status)
        q = q.order_by(Post.scheduled_date.desc()).offset((page - 1) * limit).limit(limit)
        res = await self.session.execute(q)
        total = (await self.session.execute(count_q)).scalar_one()
        return list(res.scalars().all()), total

    async def list_due(self, now: datetime) -> List[Post]:
        q = (
            select(Post)
            .where(Post.status == PostStatus.scheduled.value, Post.scheduled_date <= now)
            .order_by(Post.scheduled_date)
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def claim(self, post: Post) -> bool:
        """
        Flip scheduled -> publishing in a single conditional UPDATE.
        Returns False when another run already took the post.
        """
        stmt = (
            update(Post)
            .where(Post.id == post.id, Post.status == PostStatus.scheduled.value)
            .values(status=PostStatus.publishing.value, updated_at=utc_now())
        )
        res = await self.session.execute(stmt)
        await self.session.commit()
        if res.rowcount != 1:
            return False
        await self.session.refresh(post)
        return True

    async def mark_failed(self, post_id: uuid.UUID) -> None:
        stmt = (
            update(Post)
            .where(Post.id == post_id)
            .values(status=PostStatus.failed.value, updated_at=utc_now())
        )
        await self.session.execute(stmt)
        await self.session.commit()
