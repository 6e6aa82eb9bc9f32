# social_publisher/platforms/instagram.py
import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

import httpx
import structlog

from social_publisher.config import Settings
from social_publisher.infrastructure.http_client import ExternalAPIClient
from social_publisher.infrastructure.media import MediaStore
from social_publisher.platforms.base import PlatformAdapter, PlatformCredential, PublishResult
from social_publisher.platforms.graph import GraphPagesMixin

logger = structlog.get_logger(__name__)

INSTAGRAM_CAPTION_LIMIT = 2200


class ContainerState(str, Enum):
    PENDING = "PENDING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    TIMED_OUT = "TIMED_OUT"


class InstagramAdapter(GraphPagesMixin, PlatformAdapter):
    """
    Two-phase publish: create a media container, wait for Instagram to finish
    processing it, then publish it. All calls use the token of the Facebook
    Page the Instagram business account is linked to.
    """

    platform = "instagram"
    display_name = "Instagram"

    def __init__(
        self,
        settings: Settings,
        http: Optional[ExternalAPIClient] = None,
        media: Optional[MediaStore] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(settings, http)
        self.media = media or MediaStore(settings, self.http)
        self.sleep = sleep

    async def resolve_target(self, credential: PlatformCredential, ig_account_id: Optional[str]) -> Tuple[str, str]:
        """Return (instagram business account id, page access token)."""
        ig_id = str(ig_account_id or credential.platform_user_id)
        for page in credential.pages:
            if page.instagram_account_id == ig_id and page.access_token:
                return ig_id, page.access_token

        # nothing stored; ask Graph which page the account hangs off
        for page in await self.list_pages(credential.access_token):
            if page.instagram_account_id == ig_id and page.access_token:
                return ig_id, page.access_token
        raise self.error(f"No Facebook Page with a page token is linked to Instagram account {ig_id}")

    async def _container_state(self, creation_id: str, token: str) -> Tuple[ContainerState, Optional[str]]:
        try:
            resp = await self.http.get(
                f"{self.settings.graph_api_url}/{creation_id}",
                params={"fields": "status_code,status", "access_token": token},
            )
        except httpx.HTTPError as exc:
            logger.warning("instagram_container_poll_failed", creation_id=creation_id, error=exc.__class__.__name__)
            return ContainerState.PENDING, None
        if resp.status_code >= 500:
            logger.warning("instagram_container_poll_failed", creation_id=creation_id, status=resp.status_code)
            return ContainerState.PENDING, None

        # 4xx here means the container id itself is invalid: fatal
        body = self._raise_for_response(resp)
        status_code = body.get("status_code")
        if status_code == "FINISHED":
            return ContainerState.FINISHED, None
        if status_code in ("ERROR", "EXPIRED"):
            return ContainerState.ERROR, body.get("status") or status_code
        return ContainerState.PENDING, status_code

    async def wait_for_container(self, creation_id: str, token: str) -> Tuple[ContainerState, Optional[str]]:
        max_attempts = self.settings.instagram_poll_max_attempts
        detail = None
        for attempt in range(1, max_attempts + 1):
            state, detail = await self._container_state(creation_id, token)
            logger.debug("instagram_container_status", creation_id=creation_id, attempt=attempt, state=state.value, detail=detail)
            if state in (ContainerState.FINISHED, ContainerState.ERROR):
                return state, detail
            if attempt < max_attempts:
                await self.sleep(self.settings.instagram_poll_interval)
        return ContainerState.TIMED_OUT, detail

    async def _publish(
        self,
        credential: PlatformCredential,
        caption: str,
        media_url: Optional[str],
        page_id: Optional[str],
    ) -> PublishResult:
        if not media_url:
            raise self.error("Instagram requires media for posts")
        ig_id, token = await self.resolve_target(credential, page_id)
        image_url = self.media.ensure_public(media_url)
        base = self.settings.graph_api_url

        resp = await self.http.post(
            f"{base}/{ig_id}/media",
            json={"image_url": image_url, "caption": caption[:INSTAGRAM_CAPTION_LIMIT], "access_token": token},
        )
        creation_id = self._raise_for_response(resp).get("id")
        if not creation_id:
            raise self.error("media container response did not include a creation id")
        logger.info("instagram_container_created", ig_account_id=ig_id, creation_id=creation_id)

        state, detail = await self.wait_for_container(creation_id, token)
        if state == ContainerState.ERROR:
            raise self.error(f"media container {creation_id} failed processing: {detail}")
        if state == ContainerState.TIMED_OUT:
            raise self.error(
                f"media container {creation_id} not ready after "
                f"{self.settings.instagram_poll_max_attempts} status checks"
            )

        resp = await self.http.post(
            f"{base}/{ig_id}/media_publish",
            json={"creation_id": creation_id, "access_token": token},
        )
        post_id = self._raise_for_response(resp).get("id")
        if not post_id:
            raise self.error("media_publish response did not include a post id")
        return PublishResult(post_id=str(post_id), page_id=ig_id)
