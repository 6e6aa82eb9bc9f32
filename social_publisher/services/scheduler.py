# social_publisher/services/scheduler.py
"""
Scheduled publishing.

Every tick (once at start, then every SCHEDULER_INTERVAL_SECONDS) the
scheduler loads the due posts and publishes them one after another. Each post
is claimed with a conditional status flip before it is touched, so a post can
never be picked up by two overlapping ticks. An optional Redis lease keeps
more than one process from ticking at the same time.
"""
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel.ext.asyncio.session import AsyncSession
from structlog.contextvars import bind_contextvars, unbind_contextvars

from social_publisher.config import Settings
from social_publisher.infrastructure.media import MediaStore
from social_publisher.infrastructure.posts_repo import PostsRepository
from social_publisher.infrastructure.redis_cache import RedisLease
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.models.types import utc_now
from social_publisher.platforms.base import PlatformAdapter
from social_publisher.services.publish_service import PublishService

logger = structlog.get_logger("scheduler")

JOB_ID = "publish_due_posts"


class PostScheduler:
    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], AsyncSession],
        adapters: Dict[str, PlatformAdapter],
        media: MediaStore,
        cipher: Optional[TokenCipher] = None,
        lease: Optional[RedisLease] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.adapters = adapters
        self.media = media
        self.cipher = cipher or TokenCipher(settings.oauth_token_key)
        self.lease = lease
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

    def start(self) -> None:
        if not self.settings.scheduler_enabled:
            logger.info("scheduler_disabled")
            return
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.check_scheduled_posts,
            IntervalTrigger(seconds=self.settings.scheduler_interval_seconds),
            id=JOB_ID,
            name="Publish due posts",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=utc_now(),
        )
        self.scheduler.start()
        logger.info("scheduler_started", interval_seconds=self.settings.scheduler_interval_seconds)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")

    async def check_scheduled_posts(self, now: Optional[datetime] = None) -> int:
        """
        Run one tick. Returns how many posts this tick attempted.
        Nothing raised here escapes: a broken tick is logged and the next one runs normally.
        """
        tick_id = str(uuid.uuid4())
        bind_contextvars(tick_id=tick_id)
        try:
            if self.lease is not None and not await self.lease.acquire():
                logger.info("scheduler_tick_skipped_lease_held")
                return 0
            try:
                return await self._run_tick(now or utc_now())
            finally:
                if self.lease is not None:
                    await self.lease.release()
        except Exception as exc:
            logger.exception("scheduler_tick_failed", error=str(exc))
            return 0
        finally:
            unbind_contextvars("tick_id")

    async def _run_tick(self, now: datetime) -> int:
        attempted = 0
        async with self.session_factory() as session:
            repo = PostsRepository(session)
            publisher = PublishService(session, self.adapters, self.media, cipher=self.cipher)
            due_ids = [post.id for post in await repo.list_due(now)]
            logger.info("scheduler_due_posts", count=len(due_ids))

            for post_id in due_ids:
                # a rollback below expires loaded rows, so reload each post
                post = await repo.get_by_id(post_id)
                if post is None or not await repo.claim(post):
                    logger.info("scheduler_post_already_claimed", post_id=str(post_id))
                    continue
                attempted += 1
                try:
                    result = await publisher.publish_post(post)
                except Exception as exc:
                    # the orchestrator crashed rather than reporting a failure
                    logger.exception("scheduler_post_crashed", post_id=str(post_id), error=str(exc))
                    await session.rollback()
                    await repo.mark_failed(post_id)
                    continue

                if result.success:
                    logger.info("scheduler_post_published", post_id=str(post_id), platforms=[r["platform"] for r in result.results])
                else:
                    logger.error("scheduler_post_failed", post_id=str(post_id), errors=result.errors)
        return attempted
