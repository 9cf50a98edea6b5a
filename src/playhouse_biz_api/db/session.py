from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from playhouse_biz_api.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    # stale pooled connections are replaced on checkout
    return create_async_engine(database_url, echo=False, future=True, pool_pre_ping=True)


engine = build_engine(settings.database_url)
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; anything left uncommitted when a request fails is rolled back."""
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
