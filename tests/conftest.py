"""Pytest configuration and fixtures for the social publisher tests."""

import json
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.config import Settings
from social_publisher.infrastructure.database import init_db, session_factory
from social_publisher.infrastructure.http_client import ExternalAPIClient
from social_publisher.infrastructure.media import MediaStore
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.models.account import Account
from social_publisher.models.post import Post, PostStatus
from social_publisher.platforms.base import PageCredential, PlatformCredential
from social_publisher.services.account_service import encode_pages


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
GRAPH = "/v18.0"


class FakeAPI:
    """
    Routes requests by (method, path) to queued canned responses.
    The last queued response for a route repeats forever.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Any) -> None:
        """Each response is (status, json) or a callable(request) -> httpx.Response."""
        self.routes.setdefault((method, path), []).extend(responses)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": {"message": f"no fake route {request.method} {request.url.path}"}})
        canned = queue[0] if len(queue) == 1 else queue.pop(0)
        if callable(canned):
            return canned(request)
        status, body = canned
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


def body_of(request: httpx.Request) -> dict:
    return json.loads(request.content)


@pytest.fixture
def fernet_key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def settings(tmp_path, fernet_key) -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        oauth_token_key=fernet_key,
        secret_key="test-signing-secret",
        public_base_url="https://media.example.com",
        upload_dir=str(tmp_path / "uploads"),
        instagram_poll_interval=10,
        instagram_poll_max_attempts=5,
        facebook_max_page_batches=5,
    )


@pytest.fixture
def cipher(fernet_key) -> TokenCipher:
    return TokenCipher(fernet_key)


@pytest.fixture
def fake_api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def http(fake_api) -> ExternalAPIClient:
    return ExternalAPIClient(timeout=5, transport=fake_api.transport)


@pytest.fixture
def media(settings, http) -> MediaStore:
    return MediaStore(settings, http)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def fake_sleep(sleeps) -> Callable:
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep


@pytest_asyncio.fixture
async def async_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def make_session(async_engine) -> Callable[[], AsyncSession]:
    return session_factory(async_engine)


@pytest_asyncio.fixture
async def session(make_session) -> AsyncGenerator[AsyncSession, None]:
    async with make_session() as s:
        yield s


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def add_account(session, cipher, owner_id):
    async def _add(
        platform: str,
        platform_user_id: str = "user-1",
        access_token: str = "USER_TOKEN",
        pages: Optional[list[PageCredential]] = None,
        is_active: bool = True,
        owner: Optional[uuid.UUID] = None,
    ) -> Account:
        account = Account(
            owner_id=owner or owner_id,
            platform=platform,
            platform_user_id=platform_user_id,
            platform_username=f"{platform}-name",
            access_token_enc=cipher.encrypt(access_token),
            pages=encode_pages(pages or [], cipher),
            is_active=is_active,
            last_sync=datetime(2020, 1, 1, tzinfo=timezone.utc),
        )
        session.add(account)
        await session.commit()
        await session.refresh(account)
        return account
    return _add


@pytest.fixture
def add_post(session, owner_id):
    async def _add(
        platforms: list[str],
        media: Optional[list[str]] = None,
        status: str = PostStatus.scheduled.value,
        scheduled_date: Optional[datetime] = None,
        caption: str = "Hello from the scheduler",
        selected_pages: Optional[dict] = None,
    ) -> Post:
        post = Post(
            owner_id=owner_id,
            caption=caption,
            media=media or [],
            platforms=platforms,
            selected_pages=selected_pages or {},
            scheduled_date=scheduled_date or datetime.now(timezone.utc) - timedelta(minutes=1),
            status=status,
        )
        session.add(post)
        await session.commit()
        await session.refresh(post)
        return post
    return _add


@pytest.fixture
def user_credential() -> PlatformCredential:
    return PlatformCredential(platform="facebook", platform_user_id="fb-user", access_token="USER_TOKEN")
