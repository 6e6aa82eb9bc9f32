# social_publisher/infrastructure/media.py
import asyncio
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import structlog

from social_publisher.config import Settings
from social_publisher.infrastructure.http_client import ExternalAPIClient

logger = structlog.get_logger(__name__)

LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}


class MediaError(Exception):
    pass


def is_absolute_url(path: str) -> bool:
    return path.startswith("http://") or path.startswith("https://")


class MediaStore:
    """
    Boundary to the object storage that serves uploaded media.
    Storage paths look like "/uploads/<file>" and are served under PUBLIC_BASE_URL.
    """

    def __init__(self, settings: Settings, http: Optional[ExternalAPIClient] = None):
        self.public_base_url = settings.public_base_url.rstrip("/")
        self.upload_dir = Path(settings.upload_dir)
        self.http = http or ExternalAPIClient(timeout=settings.http_timeout)

    def public_url(self, path: str) -> str:
        if is_absolute_url(path):
            return path
        return f"{self.public_base_url}/{path.lstrip('/')}"

    @staticmethod
    def is_local_url(url: str) -> bool:
        return (urlparse(url).hostname or "").lower() in LOCAL_HOSTS

    def ensure_public(self, url: str) -> str:
        """Remote platforms fetch media themselves, so localhost urls are useless to them."""
        if self.is_local_url(url):
            raise MediaError(
                f"Media URL {url} is not publicly reachable; set PUBLIC_BASE_URL to a public host"
            )
        return url

    def _local_path(self, url_or_path: str) -> Optional[Path]:
        if is_absolute_url(url_or_path):
            if not url_or_path.startswith(self.public_base_url + "/"):
                return None
            relative = url_or_path[len(self.public_base_url) + 1:]
        else:
            relative = url_or_path.lstrip("/")
        if relative.startswith("uploads/"):
            relative = relative[len("uploads/"):]
        root = self.upload_dir.resolve()
        candidate = (root / relative).resolve()
        if root not in candidate.parents:
            raise MediaError(f"Media path escapes upload directory: {url_or_path}")
        return candidate

    async def read_bytes(self, url_or_path: str) -> bytes:
        """Read media from local storage when we serve it ourselves, else download it."""
        local = self._local_path(url_or_path)
        if local is not None:
            if not local.is_file():
                raise MediaError(f"Media file not found: {local.name}")
            return await asyncio.to_thread(local.read_bytes)

        resp = await self.http.get(url_or_path)
        if resp.status_code >= 400:
            raise MediaError(f"Could not download media ({resp.status_code}) from {url_or_path}")
        logger.debug("media_downloaded", url=url_or_path, size=len(resp.content))
        return resp.content
