# social_publisher/platforms/registry.py
import asyncio
from typing import Awaitable, Callable, Dict, Optional

from social_publisher.config import Settings
from social_publisher.infrastructure.http_client import ExternalAPIClient, ProxyManager
from social_publisher.infrastructure.media import MediaStore
from social_publisher.platforms.base import PlatformAdapter
from social_publisher.platforms.facebook import FacebookAdapter
from social_publisher.platforms.instagram import InstagramAdapter
from social_publisher.platforms.linkedin import LinkedInAdapter


def build_adapters(
    settings: Settings,
    http: Optional[ExternalAPIClient] = None,
    media: Optional[MediaStore] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Dict[str, PlatformAdapter]:
    """One adapter per target platform, sharing the HTTP client and media store."""
    http = http or ExternalAPIClient(ProxyManager(settings.outbound_proxies), timeout=settings.http_timeout)
    media = media or MediaStore(settings, http)
    return {
        "facebook": FacebookAdapter(settings, http, media),
        "instagram": InstagramAdapter(settings, http, media, sleep=sleep),
        "linkedin": LinkedInAdapter(settings, http, media),
    }
