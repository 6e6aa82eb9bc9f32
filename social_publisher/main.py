# social_publisher/main.py
import os
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI

from social_publisher.config import Settings, get_settings
from social_publisher.infrastructure.database import create_engine, init_db, session_factory
from social_publisher.infrastructure.http_client import ExternalAPIClient, ProxyManager
from social_publisher.infrastructure.media import MediaStore
from social_publisher.infrastructure.redis_cache import RedisLease, create_redis_client
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.middleware.logging import RequestIdMiddleware
from social_publisher.platforms.registry import build_adapters
from social_publisher.routers.accounts_router import router as accounts_router
from social_publisher.routers.post_router import router as post_router
from social_publisher.services.scheduler import PostScheduler


def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
    )


configure_structlog()
logger = structlog.get_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Social Publisher")

    engine = create_engine(settings)
    cipher = TokenCipher(settings.oauth_token_key)
    http = ExternalAPIClient(ProxyManager(settings.outbound_proxies), timeout=settings.http_timeout)
    media = MediaStore(settings, http)
    adapters = build_adapters(settings, http=http, media=media)
    lease = None
    if settings.redis_url:
        lease = RedisLease(
            create_redis_client(settings.redis_url),
            "scheduler:publish_due_posts",
            settings.scheduler_lease_seconds,
        )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory(engine)
    app.state.cipher = cipher
    app.state.media = media
    app.state.adapters = adapters
    app.state.scheduler = PostScheduler(
        settings, app.state.session_factory, adapters, media, cipher=cipher, lease=lease
    )

    app.add_middleware(RequestIdMiddleware)
    app.include_router(post_router)
    app.include_router(accounts_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "scheduler_running": app.state.scheduler.scheduler.running}

    @app.on_event("startup")
    async def on_startup():
        await init_db(engine)
        app.state.scheduler.start()
        logger.info("app_startup", environment=settings.environment)

    @app.on_event("shutdown")
    async def on_shutdown():
        app.state.scheduler.shutdown()
        await engine.dispose()
        logger.info("app_shutdown")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("social_publisher.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
