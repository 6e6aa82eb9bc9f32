# social_publisher/infrastructure/redis_cache.py
import uuid
from typing import Optional

import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger(__name__)


def create_redis_client(redis_url: str) -> aioredis.Redis:
    return aioredis.from_url(redis_url, decode_responses=True)


class RedisLease:
    """
    Single-holder lease on a Redis key (SET NX EX). Used so that only one
    process runs a scheduler tick at a time; the TTL frees the key if the
    holder dies mid-tick.
    """

    def __init__(self, client: aioredis.Redis, key: str, ttl_seconds: int):
        self.client = client
        self.key = key
        self.ttl_seconds = ttl_seconds
        self._token: Optional[str] = None

    async def acquire(self) -> bool:
        token = str(uuid.uuid4())
        acquired = await self.client.set(self.key, token, nx=True, ex=self.ttl_seconds)
        if acquired:
            self._token = token
            logger.debug("lease_acquired", key=self.key, ttl=self.ttl_seconds)
            return True
        logger.info("lease_busy", key=self.key)
        return False

    async def release(self) -> None:
        if self._token is None:
            return
        current = await self.client.get(self.key)
        if current == self._token:
            await self.client.delete(self.key)
            logger.debug("lease_released", key=self.key)
        else:
            logger.warning("lease_lost_before_release", key=self.key)
        self._token = None
