# social_publisher/config.py
import os
from typing import List, Optional

from pydantic import BaseModel


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings(BaseModel):
    """
    Runtime configuration. Built once from the environment and handed to
    adapters, the publish service and the scheduler explicitly.
    """

    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///./social_publisher.db"
    redis_url: Optional[str] = None

    # auth tokens are issued by the auth service, only verified here
    secret_key: str = "change_me_now"
    algorithm: str = "HS256"
    oauth_token_key: Optional[str] = None

    public_base_url: str = "http://localhost:8000"
    upload_dir: str = "uploads"

    graph_api_version: str = "v18.0"
    linkedin_api_url: str = "https://api.linkedin.com/v2"
    http_timeout: int = 60
    outbound_proxies: List[str] = []

    facebook_max_page_batches: int = 50
    instagram_poll_interval: float = 10.0
    instagram_poll_max_attempts: int = 30

    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    scheduler_lease_seconds: int = 300

    @property
    def graph_api_url(self) -> str:
        return f"https://graph.facebook.com/{self.graph_api_version}"

    @classmethod
    def from_env(cls) -> "Settings":
        proxies = os.getenv("OUTBOUND_PROXIES", "")
        return cls(
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./social_publisher.db"),
            redis_url=os.getenv("REDIS_URL"),
            secret_key=os.getenv("SECRET_KEY", "change_me_now"),
            algorithm=os.getenv("ALGORITHM", "HS256"),
            oauth_token_key=os.getenv("OAUTH_TOKEN_KEY"),
            public_base_url=os.getenv("PUBLIC_BASE_URL", os.getenv("BACKEND_URL", "http://localhost:8000")),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            graph_api_version=os.getenv("GRAPH_API_VERSION", "v18.0"),
            linkedin_api_url=os.getenv("LINKEDIN_API_URL", "https://api.linkedin.com/v2"),
            http_timeout=int(os.getenv("HTTP_TIMEOUT", "60")),
            outbound_proxies=[p.strip() for p in proxies.split(",") if p.strip()],
            facebook_max_page_batches=int(os.getenv("FACEBOOK_MAX_PAGE_BATCHES", "50")),
            instagram_poll_interval=float(os.getenv("INSTAGRAM_POLL_INTERVAL", "10")),
            instagram_poll_max_attempts=int(os.getenv("INSTAGRAM_POLL_MAX_ATTEMPTS", "30")),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", "true"),
            scheduler_interval_seconds=int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60")),
            scheduler_lease_seconds=int(os.getenv("SCHEDULER_LEASE_SECONDS", "300")),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
