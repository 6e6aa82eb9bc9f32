# social_publisher/infrastructure/database.py
from typing import Callable

import structlog
from sqlalchemy.ext.asyncio.engine import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.config import Settings

logger = structlog.get_logger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=False)


async def init_db(engine: AsyncEngine) -> None:
    # table classes must be imported before create_all sees them
    from social_publisher.models import account, post  # noqa: F401

    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    logger.info("db_tables_ready")


def session_factory(engine: AsyncEngine) -> Callable[[], AsyncSession]:
    """
    Return a zero-arg callable producing sessions bound to `engine`.
    Objects stay loaded after commit so they can be read outside a greenlet.
    """

    def _make() -> AsyncSession:
        return AsyncSession(engine, expire_on_commit=False)

    return _make
