# tarotapp/data/database.py
import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tarotapp.core.config import settings

logger = logging.getLogger(__name__)


def to_async_url(database_url: str) -> str:
    if database_url.startswith("postgresql://"):
        async_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        logger.warning(f"Adapted database URL to: {async_url}. Please update your configuration.")
        return async_url
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


engine = create_async_engine(to_async_url(settings.DATABASE_URL), echo=settings.DEBUG)

AsyncSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


async def create_tables(bind=engine):
    # Imported for its side effect of registering the table on Base.metadata.
    from tarotapp.models.database_models import user_document  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
