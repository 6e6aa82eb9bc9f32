# social_publisher/dependencies/db.py
from typing import AsyncGenerator, Dict

from fastapi import Request
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.infrastructure.security import TokenCipher
from social_publisher.platforms.base import PlatformAdapter


async def get_session_dep(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as session:
        yield session


def get_adapters(request: Request) -> Dict[str, PlatformAdapter]:
    # built once in the app lifespan and shared with the scheduler
    return request.app.state.adapters


def get_cipher(request: Request) -> TokenCipher:
    return request.app.state.cipher
