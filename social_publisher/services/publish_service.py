# social_publisher/services/publish_service.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.infrastructure.accounts_repo import AccountsRepository
from social_publisher.infrastructure.media import MediaStore
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.models.account import Account, Platform
from social_publisher.models.post import OutcomeStatus, Post, PostStatus
from social_publisher.models.types import utc_now
from social_publisher.platforms.base import PlatformAdapter
from social_publisher.services.account_service import account_credential

logger = structlog.get_logger(__name__)


class PostLockedError(Exception):
    pass


@dataclass
class PublishOutcome:
    success: bool
    results: List[dict] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)


class PublishService:
    """
    Publishes one post to each of its target platforms in turn. A failing
    platform is recorded and skipped; it never stops the others. The post is
    written once, after every platform has been tried.
    """

    def __init__(
        self,
        session: AsyncSession,
        adapters: Dict[str, PlatformAdapter],
        media: MediaStore,
        cipher: TokenCipher,
    ):
        self.session = session
        self.accounts = AccountsRepository(session)
        self.adapters = adapters
        self.media = media
        self.cipher = cipher

    def _account_platform(self, post: Post, platform: str) -> str:
        # a selected LinkedIn page means posting as the company, not the person
        if platform == Platform.linkedin.value and (post.selected_pages or {}).get("linkedin"):
            return Platform.linkedin_company.value
        return platform

    def _media_url(self, post: Post) -> Optional[str]:
        if not post.media:
            return None
        return self.media.public_url(post.media[0])

    async def publish_post(self, post: Post) -> PublishOutcome:
        if post.status == PostStatus.published.value:
            raise PostLockedError(f"post {post.id} is already published")

        results: List[dict] = []
        errors: List[dict] = []
        outcomes: List[dict] = []
        used_accounts: List[Account] = []
        media_url = self._media_url(post)
        log = logger.bind(post_id=str(post.id))

        for platform in post.platforms:
            page_id = (post.selected_pages or {}).get(platform)
            try:
                adapter = self.adapters.get(platform)
                if adapter is None:
                    raise ValueError(f"Unsupported platform: {platform}")
                account = await self.accounts.get_active(post.owner_id, self._account_platform(post, platform))
                if account is None:
                    raise LookupError(f"No active {platform} account found")
                credential = account_credential(account, self.cipher)
                result = await adapter.publish(credential, post.caption, media_url, page_id=page_id)
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                errors.append({"platform": platform, "error": message})
                outcomes.append({
                    "platform": platform,
                    "platform_post_id": None,
                    "page_id": page_id,
                    "published_at": utc_now().isoformat(),
                    "status": OutcomeStatus.failed.value,
                    "error": message,
                })
                log.warning("platform_publish_failed", platform=platform, error=message)
                continue

            account.last_sync = utc_now()
            used_accounts.append(account)
            results.append({"platform": platform, "post_id": result.post_id, "page_id": result.page_id})
            outcomes.append({
                "platform": platform,
                "platform_post_id": result.post_id,
                "page_id": result.page_id,
                "published_at": utc_now().isoformat(),
                "status": OutcomeStatus.success.value,
                "error": None,
            })
            log.info("platform_publish_succeeded", platform=platform, platform_post_id=result.post_id)

        # partial success still counts as published
        now = utc_now()
        post.published_platforms = [*(post.published_platforms or []), *outcomes]
        if results:
            post.status = PostStatus.published.value
            post.published_at = now
        else:
            post.status = PostStatus.failed.value
        post.updated_at = now

        self.session.add(post)
        for account in used_accounts:
            self.session.add(account)
        await self.session.commit()

        log.info("post_publish_finished", status=post.status, succeeded=len(results), failed=len(errors))
        return PublishOutcome(success=bool(results), results=results, errors=errors)
