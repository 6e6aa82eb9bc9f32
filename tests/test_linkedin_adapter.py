"""Tests for the LinkedIn UGC post adapter."""

from pathlib import Path

import httpx
import pytest

from conftest import body_of
from social_publisher.platforms.base import PlatformApiError, PlatformCredential
from social_publisher.platforms.linkedin import LinkedInAdapter, author_urn

UPLOAD_URL = "https://api.linkedin.com/mediaUpload/abc/upload"


@pytest.fixture
def adapter(settings, http, media) -> LinkedInAdapter:
    return LinkedInAdapter(settings, http, media)


@pytest.fixture
def person() -> PlatformCredential:
    return PlatformCredential(platform="linkedin", platform_user_id="abc123", access_token="LI_TOKEN")


def register_upload_ok():
    return (200, {"value": {
        "uploadMechanism": {
            "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {"uploadUrl": UPLOAD_URL},
        },
        "asset": "urn:li:digitalmediaAsset:xyz",
    }})


class TestAuthorUrn:
    def test_person(self) -> None:
        assert author_urn("abc123") == "urn:li:person:abc123"

    def test_company(self) -> None:
        assert author_urn("42", "linkedin-company") == "urn:li:organization:42"

    def test_already_a_urn(self) -> None:
        assert author_urn("urn:li:organization:42") == "urn:li:organization:42"
        assert author_urn("urn:li:person:abc", "linkedin-company") == "urn:li:person:abc"


class TestLinkedInPublish:
    async def test_text_post(self, adapter, fake_api, person) -> None:
        fake_api.add("POST", "/v2/ugcPosts", (201, {"id": "urn:li:share:1"}))

        result = await adapter.publish(person, "hello linkedin")

        assert result.post_id == "urn:li:share:1"
        request = fake_api.calls("POST", "/v2/ugcPosts")[0]
        assert request.headers["Authorization"] == "Bearer LI_TOKEN"
        assert request.headers["X-Restli-Protocol-Version"] == "2.0.0"
        sent = body_of(request)
        assert sent["author"] == "urn:li:person:abc123"
        assert sent["lifecycleState"] == "PUBLISHED"
        share = sent["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareCommentary"] == {"text": "hello linkedin"}
        assert share["shareMediaCategory"] == "NONE"
        assert sent["visibility"] == {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"}

    async def test_post_id_from_header(self, adapter, fake_api, person) -> None:
        fake_api.add("POST", "/v2/ugcPosts", lambda request: httpx.Response(201, headers={"x-restli-id": "urn:li:share:9"}))

        result = await adapter.publish(person, "hi")

        assert result.post_id == "urn:li:share:9"

    async def test_commentary_is_truncated(self, adapter, fake_api, person) -> None:
        fake_api.add("POST", "/v2/ugcPosts", (201, {"id": "urn:li:share:1"}))

        await adapter.publish(person, "y" * 3500)

        share = body_of(fake_api.calls("POST", "/v2/ugcPosts")[0])["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert len(share["shareCommentary"]["text"]) == 3000

    async def test_company_account_posts_as_organization(self, adapter, fake_api) -> None:
        company = PlatformCredential(platform="linkedin-company", platform_user_id="42", access_token="LI_TOKEN")
        fake_api.add("POST", "/v2/ugcPosts", (201, {"id": "urn:li:share:2"}))

        await adapter.publish(company, "from the company")

        assert body_of(fake_api.calls("POST", "/v2/ugcPosts")[0])["author"] == "urn:li:organization:42"

    async def test_page_hint_posts_as_organization(self, adapter, fake_api, person) -> None:
        fake_api.add("POST", "/v2/ugcPosts", (201, {"id": "urn:li:share:3"}))

        result = await adapter.publish(person, "hi", page_id="77")

        assert body_of(fake_api.calls("POST", "/v2/ugcPosts")[0])["author"] == "urn:li:organization:77"
        assert result.page_id == "77"

    async def test_image_post_registers_uploads_then_shares(self, adapter, fake_api, person, settings) -> None:
        upload_dir = Path(settings.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        (upload_dir / "pic.jpg").write_bytes(b"\xff\xd8jpegdata")
        fake_api.add("POST", "/v2/assets", register_upload_ok())
        fake_api.add("PUT", "/mediaUpload/abc/upload", lambda request: httpx.Response(201))
        fake_api.add("POST", "/v2/ugcPosts", (201, {"id": "urn:li:share:4"}))

        result = await adapter.publish(person, "with a picture", media_url="https://media.example.com/uploads/pic.jpg")

        assert result.post_id == "urn:li:share:4"
        register = fake_api.calls("POST", "/v2/assets")[0]
        assert register.url.params["action"] == "registerUpload"
        assert body_of(register)["registerUploadRequest"]["owner"] == "urn:li:person:abc123"
        upload = fake_api.calls("PUT", "/mediaUpload/abc/upload")[0]
        assert upload.content == b"\xff\xd8jpegdata"
        assert upload.headers["Content-Type"] == "application/octet-stream"
        share = body_of(fake_api.calls("POST", "/v2/ugcPosts")[0])["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareMediaCategory"] == "IMAGE"
        assert share["media"] == [{
            "status": "READY",
            "media": "urn:li:digitalmediaAsset:xyz",
            "title": {"text": "Shared Image"},
        }]

    async def test_remote_image_is_downloaded(self, adapter, fake_api, person) -> None:
        fake_api.add("GET", "/images/remote.png", lambda request: httpx.Response(200, content=b"pngbytes"))
        fake_api.add("POST", "/v2/assets", register_upload_ok())
        fake_api.add("PUT", "/mediaUpload/abc/upload", lambda request: httpx.Response(201))
        fake_api.add("POST", "/v2/ugcPosts", (201, {"id": "urn:li:share:5"}))

        await adapter.publish(person, "remote", media_url="https://cdn.other.org/images/remote.png")

        assert fake_api.calls("PUT", "/mediaUpload/abc/upload")[0].content == b"pngbytes"

    async def test_missing_local_file_fails_before_sharing(self, adapter, fake_api, person) -> None:
        fake_api.add("POST", "/v2/assets", register_upload_ok())

        with pytest.raises(PlatformApiError, match="Media file not found"):
            await adapter.publish(person, "x", media_url="/uploads/missing.jpg")

        assert fake_api.calls("POST", "/v2/ugcPosts") == []

    async def test_upstream_error_message(self, adapter, fake_api, person) -> None:
        fake_api.add("POST", "/v2/ugcPosts", (422, {"message": "Unpermitted fields present", "status": 422}))

        with pytest.raises(PlatformApiError) as exc_info:
            await adapter.publish(person, "hi")

        assert str(exc_info.value) == "LinkedIn API error: Unpermitted fields present"
        assert exc_info.value.http_status == 422
        assert exc_info.value.platform == "linkedin"
