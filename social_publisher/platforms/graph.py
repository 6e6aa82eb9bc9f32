# social_publisher/platforms/graph.py
from typing import AsyncIterator, List, Optional

import structlog

from social_publisher.platforms.base import PageCredential

logger = structlog.get_logger(__name__)

PAGE_FIELDS = "id,name,access_token,instagram_business_account"


class GraphPagesMixin:
    """
    Page discovery shared by the Facebook and Instagram adapters. Both talk to
    the same Graph API and report errors the same way.
    """

    def _upstream_message(self, body: dict) -> Optional[str]:
        err = body.get("error")
        if isinstance(err, dict):
            return err.get("message")
        return None

    async def iter_page_batches(self, user_token: str) -> AsyncIterator[List[dict]]:
        """
        Yield `/me/accounts` result pages, following `paging.next` until it runs out.
        A misbehaving upstream that never stops paging is cut off after
        `facebook_max_page_batches` requests.
        """
        url: Optional[str] = f"{self.settings.graph_api_url}/me/accounts"
        params: Optional[dict] = {"access_token": user_token, "fields": PAGE_FIELDS, "limit": 100}
        batches = 0
        while url:
            if batches >= self.settings.facebook_max_page_batches:
                logger.warning("graph_pages_pagination_capped", platform=self.platform, batches=batches)
                return
            resp = await self.http.get(url, params=params)
            body = self._raise_for_response(resp)
            batches += 1
            yield body.get("data") or []
            url = (body.get("paging") or {}).get("next")
            # the next link already carries the query string
            params = None

    async def list_pages(self, user_token: str) -> List[PageCredential]:
        pages: List[PageCredential] = []
        async for batch in self.iter_page_batches(user_token):
            for raw in batch:
                ig = raw.get("instagram_business_account") or {}
                pages.append(PageCredential(
                    id=str(raw["id"]),
                    name=raw.get("name", ""),
                    access_token=raw.get("access_token"),
                    instagram_account_id=str(ig["id"]) if ig.get("id") else None,
                ))
        logger.debug("graph_pages_listed", platform=self.platform, count=len(pages))
        return pages
