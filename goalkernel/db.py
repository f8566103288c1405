import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from goalkernel.config import settings
from goalkernel.progress.store import SCHEMA

logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Force the asyncpg driver onto plain postgres URLs (Heroku-style env vars)."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+asyncpg://", 1)
    return url


engine = create_async_engine(
    async_database_url(settings.database_url),
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    echo=settings.db_echo,
)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:  # type: ignore[misc]
    async with async_session() as session:
        yield session


async def create_schema(bind: AsyncEngine = engine) -> None:
    """Create the goals table and its index if they are missing."""
    async with bind.begin() as conn:
        for statement in SCHEMA:
            await conn.execute(text(statement))
    logger.info("goals schema ensured")
