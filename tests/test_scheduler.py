"""Tests for the scheduled publishing tick."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from social_publisher.infrastructure.posts_repo import PostsRepository
from social_publisher.infrastructure.redis_cache import RedisLease
from social_publisher.models.post import Post, PostStatus
from social_publisher.platforms.base import PlatformAdapter, PublishResult
from social_publisher.services.publish_service import PublishService
from social_publisher.services.scheduler import JOB_ID, PostScheduler


class RecordingAdapter(PlatformAdapter):
    platform = "facebook"
    display_name = "Facebook"

    def __init__(self, settings, log: list):
        super().__init__(settings)
        self.log = log

    def _upstream_message(self, body: dict) -> Optional[str]:
        return None

    async def _publish(self, credential, caption, media_url, page_id) -> PublishResult:
        self.log.append(caption)
        return PublishResult(post_id=f"fb-{len(self.log)}")


class InMemoryRedis:
    """Just enough of the redis client for a lease."""

    def __init__(self) -> None:
        self.store: dict = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        self.store.pop(key, None)


@pytest.fixture
def published() -> list:
    return []


@pytest.fixture
def scheduler(settings, make_session, media, cipher, published) -> PostScheduler:
    adapters = {"facebook": RecordingAdapter(settings, published)}
    return PostScheduler(settings, make_session, adapters, media, cipher=cipher)


async def load(make_session, post_id) -> Post:
    async with make_session() as s:
        return await s.get(Post, post_id)


class TestCheckScheduledPosts:
    async def test_publishes_due_scheduled_posts_only(self, scheduler, add_account, add_post, make_session, published) -> None:
        await add_account("facebook")
        due = await add_post(["facebook"], caption="due")
        future = await add_post(["facebook"], caption="future", scheduled_date=datetime.now(timezone.utc) + timedelta(hours=1))
        draft = await add_post(["facebook"], caption="draft", status=PostStatus.draft.value)
        failed = await add_post(["facebook"], caption="failed", status=PostStatus.failed.value)

        attempted = await scheduler.check_scheduled_posts()

        assert attempted == 1
        assert published == ["due"]
        assert (await load(make_session, due.id)).status == PostStatus.published.value
        assert (await load(make_session, future.id)).status == PostStatus.scheduled.value
        assert (await load(make_session, draft.id)).status == PostStatus.draft.value
        assert (await load(make_session, failed.id)).status == PostStatus.failed.value

    async def test_published_at_is_stored_as_utc(self, scheduler, add_account, add_post, make_session) -> None:
        await add_account("facebook")
        post = await add_post(["facebook"])

        await scheduler.check_scheduled_posts()

        stored = await load(make_session, post.id)
        assert stored.published_at.utcoffset() == timedelta(0)
        assert stored.published_at >= stored.scheduled_date

    async def test_posts_are_processed_oldest_first(self, scheduler, add_account, add_post, published) -> None:
        await add_account("facebook")
        now = datetime.now(timezone.utc)
        await add_post(["facebook"], caption="second", scheduled_date=now - timedelta(minutes=1))
        await add_post(["facebook"], caption="first", scheduled_date=now - timedelta(minutes=5))

        await scheduler.check_scheduled_posts()

        assert published == ["first", "second"]

    async def test_explicit_now_controls_eligibility(self, scheduler, add_account, add_post, published) -> None:
        await add_account("facebook")
        later = datetime.now(timezone.utc) + timedelta(hours=2)
        await add_post(["facebook"], caption="later", scheduled_date=later)

        assert await scheduler.check_scheduled_posts(now=later - timedelta(seconds=1)) == 0
        assert await scheduler.check_scheduled_posts(now=later) == 1
        assert published == ["later"]

    async def test_a_published_post_is_never_picked_up_again(self, scheduler, add_account, add_post, published) -> None:
        await add_account("facebook")
        await add_post(["facebook"], caption="once")

        await scheduler.check_scheduled_posts()
        await scheduler.check_scheduled_posts()

        assert published == ["once"]

    async def test_platform_failure_marks_post_failed(self, scheduler, add_post, make_session) -> None:
        # no connected account
        post = await add_post(["facebook"])

        assert await scheduler.check_scheduled_posts() == 1

        stored = await load(make_session, post.id)
        assert stored.status == PostStatus.failed.value
        assert stored.published_platforms[0]["error"] == "No active facebook account found"

    async def test_crash_while_publishing_marks_post_failed(self, scheduler, add_account, add_post, make_session, monkeypatch) -> None:
        await add_account("facebook")
        crashing = await add_post(["facebook"], caption="crash", scheduled_date=datetime.now(timezone.utc) - timedelta(minutes=5))
        fine = await add_post(["facebook"], caption="fine")
        original = PublishService.publish_post

        async def flaky(self, post):
            if post.caption == "crash":
                raise RuntimeError("database went away")
            return await original(self, post)

        monkeypatch.setattr(PublishService, "publish_post", flaky)

        assert await scheduler.check_scheduled_posts() == 2

        assert (await load(make_session, crashing.id)).status == PostStatus.failed.value
        assert (await load(make_session, fine.id)).status == PostStatus.published.value

    async def test_claimed_post_is_skipped(self, scheduler, add_account, add_post, make_session, published) -> None:
        await add_account("facebook")
        post = await add_post(["facebook"])
        async with make_session() as other:
            assert await PostsRepository(other).claim(await other.get(Post, post.id)) is True

        assert await scheduler.check_scheduled_posts() == 0

        assert published == []
        assert (await load(make_session, post.id)).status == PostStatus.publishing.value

    async def test_tick_errors_do_not_escape(self, settings, media, cipher, published) -> None:
        def broken_factory():
            raise RuntimeError("no database")

        scheduler = PostScheduler(settings, broken_factory, {}, media, cipher=cipher)

        assert await scheduler.check_scheduled_posts() == 0


class TestLease:
    async def test_tick_skipped_while_another_process_holds_the_lease(
        self, settings, make_session, media, cipher, add_account, add_post, published
    ) -> None:
        redis = InMemoryRedis()
        redis.store["scheduler:lease"] = "someone-else"
        lease = RedisLease(redis, "scheduler:lease", ttl_seconds=300)
        scheduler = PostScheduler(
            settings, make_session, {"facebook": RecordingAdapter(settings, published)}, media, cipher=cipher, lease=lease
        )
        await add_account("facebook")
        await add_post(["facebook"])

        assert await scheduler.check_scheduled_posts() == 0
        assert published == []
        assert redis.store["scheduler:lease"] == "someone-else"

    async def test_lease_released_after_tick(
        self, settings, make_session, media, cipher, add_account, add_post, published
    ) -> None:
        redis = InMemoryRedis()
        lease = RedisLease(redis, "scheduler:lease", ttl_seconds=300)
        scheduler = PostScheduler(
            settings, make_session, {"facebook": RecordingAdapter(settings, published)}, media, cipher=cipher, lease=lease
        )
        await add_account("facebook")
        await add_post(["facebook"])

        assert await scheduler.check_scheduled_posts() == 1
        assert "scheduler:lease" not in redis.store

    async def test_release_leaves_a_lease_taken_over_by_someone_else(self) -> None:
        redis = InMemoryRedis()
        lease = RedisLease(redis, "k", ttl_seconds=1)
        assert await lease.acquire() is True
        redis.store["k"] = "new-holder"

        await lease.release()

        assert redis.store["k"] == "new-holder"


class TestJobRegistration:
    async def test_start_registers_a_single_non_overlapping_job(self, scheduler, settings, monkeypatch) -> None:
        started = []
        # keep the job pending so no tick runs during the test
        monkeypatch.setattr(scheduler.scheduler, "start", lambda: started.append(True))

        scheduler.start()

        assert started == [True]
        job = scheduler.scheduler.get_job(JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
        assert isinstance(job.trigger, IntervalTrigger)
        assert job.trigger.interval == timedelta(seconds=settings.scheduler_interval_seconds)

    async def test_disabled_scheduler_does_not_start(self, settings, make_session, media) -> None:
        disabled = settings.model_copy(update={"scheduler_enabled": False})
        scheduler = PostScheduler(disabled, make_session, {}, media)

        scheduler.start()

        assert scheduler.scheduler.running is False
