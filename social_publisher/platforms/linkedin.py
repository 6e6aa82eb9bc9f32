# social_publisher/platforms/linkedin.py
from typing import Optional

import structlog

from social_publisher.config import Settings
from social_publisher.infrastructure.http_client import ExternalAPIClient
from social_publisher.infrastructure.media import MediaStore
from social_publisher.platforms.base import PlatformAdapter, PlatformCredential, PublishResult

logger = structlog.get_logger(__name__)

LINKEDIN_TEXT_LIMIT = 3000
IMAGE_RECIPE = "urn:li:digitalmediaRecipe:feedshare-image"
UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"


def author_urn(platform_user_id: str, platform: str = "linkedin") -> str:
    if platform_user_id.startswith("urn:li:"):
        return platform_user_id
    kind = "organization" if platform == "linkedin-company" else "person"
    return f"urn:li:{kind}:{platform_user_id}"


class LinkedInAdapter(PlatformAdapter):
    """UGC post API. Personal and company connections differ only in the author URN."""

    platform = "linkedin"
    display_name = "LinkedIn"

    def __init__(self, settings: Settings, http: Optional[ExternalAPIClient] = None, media: Optional[MediaStore] = None):
        super().__init__(settings, http)
        self.media = media or MediaStore(settings, self.http)

    def _upstream_message(self, body: dict) -> Optional[str]:
        return body.get("message")

    def _headers(self, token: str, **extra) -> dict:
        headers = {"Authorization": f"Bearer {token}", "X-Restli-Protocol-Version": "2.0.0"}
        headers.update(extra)
        return headers

    async def register_upload(self, token: str, author: str) -> tuple:
        resp = await self.http.post(
            f"{self.settings.linkedin_api_url}/assets?action=registerUpload",
            headers=self._headers(token),
            json={
                "registerUploadRequest": {
                    "recipes": [IMAGE_RECIPE],
                    "owner": author,
                    "serviceRelationships": [{
                        "relationshipType": "OWNER",
                        "identifier": "urn:li:userGeneratedContent",
                    }],
                }
            },
        )
        value = self._raise_for_response(resp).get("value") or {}
        upload_url = ((value.get("uploadMechanism") or {}).get(UPLOAD_MECHANISM) or {}).get("uploadUrl")
        asset = value.get("asset")
        if not upload_url or not asset:
            raise self.error("registerUpload response did not include an upload url and asset")
        return upload_url, asset

    async def upload_image(self, token: str, upload_url: str, media_url: str) -> None:
        data = await self.media.read_bytes(media_url)
        resp = await self.http.put(
            upload_url,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/octet-stream"},
            content=data,
        )
        self._raise_for_response(resp)
        logger.debug("linkedin_image_uploaded", size=len(data))

    async def _publish(
        self,
        credential: PlatformCredential,
        caption: str,
        media_url: Optional[str],
        page_id: Optional[str],
    ) -> PublishResult:
        if page_id:
            author = author_urn(str(page_id), "linkedin-company")
        else:
            author = author_urn(credential.platform_user_id, credential.platform)
        token = credential.access_token

        share_content = {
            "shareCommentary": {"text": caption[:LINKEDIN_TEXT_LIMIT]},
            "shareMediaCategory": "NONE",
        }
        if media_url:
            upload_url, asset = await self.register_upload(token, author)
            await self.upload_image(token, upload_url, media_url)
            share_content["shareMediaCategory"] = "IMAGE"
            share_content["media"] = [{"status": "READY", "media": asset, "title": {"text": "Shared Image"}}]

        resp = await self.http.post(
            f"{self.settings.linkedin_api_url}/ugcPosts",
            headers=self._headers(token, **{"Content-Type": "application/json"}),
            json={
                "author": author,
                "lifecycleState": "PUBLISHED",
                "specificContent": {"com.linkedin.ugc.ShareContent": share_content},
                "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            },
        )
        body = self._raise_for_response(resp)
        post_id = body.get("id") or resp.headers.get("x-restli-id")
        if not post_id:
            raise self.error("ugcPosts response did not include a post id")
        return PublishResult(post_id=str(post_id), page_id=str(page_id) if page_id else None)
