# social_publisher/platforms/base.py
"""
Common contract for the platform publishing adapters.

Each adapter implements `_publish` for one social network. The public
`publish` wrapper guarantees that whatever goes wrong surfaces as a
`PlatformApiError` carrying a human-readable, token-free message.
"""
import abc
import re
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
import structlog

from social_publisher.config import Settings
from social_publisher.infrastructure.http_client import ExternalAPIClient
from social_publisher.infrastructure.media import MediaError

logger = structlog.get_logger(__name__)


_SENSITIVE_PATTERNS = [
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_\.]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"access_token=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), "access_token=***"),
    (re.compile(r"client_secret=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), "client_secret=***"),
    # long opaque strings are almost always tokens
    (re.compile(r"[A-Za-z0-9\-_]{40,}"), "***TOKEN***"),
]


def sanitize(text: Optional[str]) -> Optional[str]:
    """Strip tokens from error messages and response text."""
    if not text:
        return text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class PlatformApiError(Exception):
    def __init__(
        self,
        platform: str,
        message: str,
        http_status: Optional[int] = None,
        upstream_message: Optional[str] = None,
    ):
        self.platform = platform
        self.message = sanitize(message)
        self.http_status = http_status
        self.upstream_message = sanitize(upstream_message)
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


@dataclass
class PageCredential:
    id: str
    name: str
    access_token: Optional[str]
    instagram_account_id: Optional[str] = None


@dataclass
class PlatformCredential:
    """Decrypted view of an Account, handed to adapters and never logged."""
    platform: str
    platform_user_id: str
    access_token: str
    pages: List[PageCredential] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"PlatformCredential(platform={self.platform!r}, platform_user_id={self.platform_user_id!r})"


@dataclass
class PublishResult:
    post_id: str
    page_id: Optional[str] = None


class PlatformAdapter(abc.ABC):
    platform: str = "unknown"
    display_name: str = "Platform"

    def __init__(self, settings: Settings, http: Optional[ExternalAPIClient] = None):
        self.settings = settings
        self.http = http or ExternalAPIClient(timeout=settings.http_timeout)

    def error(self, message: str, http_status: Optional[int] = None, upstream_message: Optional[str] = None) -> PlatformApiError:
        return PlatformApiError(
            self.platform,
            f"{self.display_name} API error: {message}",
            http_status=http_status,
            upstream_message=upstream_message,
        )

    @abc.abstractmethod
    def _upstream_message(self, body: dict) -> Optional[str]:
        ...

    def _raise_for_response(self, resp: httpx.Response) -> dict:
        """
        Map one upstream response to its JSON body or a PlatformApiError.
        This is the only place adapters interpret HTTP failures.
        """
        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if resp.status_code >= 400:
            upstream = self._upstream_message(body) if isinstance(body, dict) else None
            message = upstream or f"HTTP {resp.status_code}: {resp.text[:300]}"
            raise self.error(message, http_status=resp.status_code, upstream_message=upstream)
        return body if isinstance(body, dict) else {"data": body}

    async def publish(
        self,
        credential: PlatformCredential,
        caption: str,
        media_url: Optional[str] = None,
        page_id: Optional[str] = None,
    ) -> PublishResult:
        try:
            result = await self._publish(credential, caption, media_url, page_id)
        except PlatformApiError:
            raise
        except MediaError as exc:
            raise self.error(str(exc))
        except httpx.HTTPError as exc:
            raise self.error(f"request failed: {exc.__class__.__name__}: {exc}")
        except Exception as exc:
            logger.exception("adapter_unexpected_error", platform=self.platform)
            raise self.error(str(exc) or exc.__class__.__name__)
        logger.info("adapter_published", platform=self.platform, post_id=result.post_id, page_id=result.page_id)
        return result

    @abc.abstractmethod
    async def _publish(
        self,
        credential: PlatformCredential,
        caption: str,
        media_url: Optional[str],
        page_id: Optional[str],
    ) -> PublishResult:
        ...
