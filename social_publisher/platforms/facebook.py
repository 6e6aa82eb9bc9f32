# social_publisher/platforms/facebook.py
from typing import List, Optional

import structlog

from social_publisher.config import Settings
from social_publisher.infrastructure.http_client import ExternalAPIClient
from social_publisher.infrastructure.media import MediaStore
from social_publisher.platforms.base import PageCredential, PlatformAdapter, PlatformCredential, PublishResult
from social_publisher.platforms.graph import GraphPagesMixin

logger = structlog.get_logger(__name__)

FACEBOOK_CAPTION_LIMIT = 63206


class FacebookAdapter(GraphPagesMixin, PlatformAdapter):
    """
    Publishes through a Facebook Page. The stored credential is the user
    token; it is only used to list pages. Every write uses the page token.
    """

    platform = "facebook"
    display_name = "Facebook"

    def __init__(self, settings: Settings, http: Optional[ExternalAPIClient] = None, media: Optional[MediaStore] = None):
        super().__init__(settings, http)
        self.media = media or MediaStore(settings, self.http)

    def select_page(self, pages: List[PageCredential], page_id: Optional[str]) -> PageCredential:
        if not pages:
            raise self.error("No Facebook Pages found for this account. Connect a Page you manage.")
        if page_id is None:
            return pages[0]
        for page in pages:
            if page.id == str(page_id):
                return page
        raise self.error(f"Page {page_id} is not managed by this account")

    async def _publish(
        self,
        credential: PlatformCredential,
        caption: str,
        media_url: Optional[str],
        page_id: Optional[str],
    ) -> PublishResult:
        pages = await self.list_pages(credential.access_token)
        page = self.select_page(pages, page_id)
        if not page.access_token:
            raise self.error(f"Page access token missing for page {page.id}; reconnect the Page")

        message = caption[:FACEBOOK_CAPTION_LIMIT]
        base = self.settings.graph_api_url
        if media_url:
            url = self.media.ensure_public(media_url)
            resp = await self.http.post(
                f"{base}/{page.id}/photos",
                json={"url": url, "caption": message, "access_token": page.access_token},
            )
        else:
            resp = await self.http.post(
                f"{base}/{page.id}/feed",
                json={"message": message, "access_token": page.access_token},
            )
        body = self._raise_for_response(resp)
        # photo uploads return both the photo id and the feed post id
        post_id = body.get("post_id") or body.get("id")
        if not post_id:
            raise self.error("response did not include a post id")
        return PublishResult(post_id=str(post_id), page_id=page.id)

    async def fetch_post_stats(self, page: PageCredential, post_id: str) -> dict:
        """Likes, comments and shares for a page post, plus reach when insights are readable."""
        base = self.settings.graph_api_url
        resp = await self.http.get(
            f"{base}/{post_id}",
            params={
                "fields": "likes.summary(true),comments.summary(true),shares",
                "access_token": page.access_token,
            },
        )
        body = self._raise_for_response(resp)
        stats = {
            "likes": ((body.get("likes") or {}).get("summary") or {}).get("total_count", 0),
            "comments": ((body.get("comments") or {}).get("summary") or {}).get("total_count", 0),
            "shares": (body.get("shares") or {}).get("count", 0),
            "reach": 0,
        }

        insights = await self.http.get(
            f"{base}/{post_id}/insights",
            params={"metric": "post_impressions_unique", "access_token": page.access_token},
        )
        if insights.status_code >= 400:
            # read_insights needs app review; counts above are still valid
            logger.warning("facebook_insights_unavailable", post_id=post_id, status=insights.status_code)
            return stats
        for metric in insights.json().get("data") or []:
            if metric.get("name") == "post_impressions_unique":
                values = metric.get("values") or [{}]
                stats["reach"] = values[0].get("value", 0)
        return stats
