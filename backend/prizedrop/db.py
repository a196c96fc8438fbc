from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession

from prizedrop.models.giveaway import Base


def to_async_url(db_url: str) -> str:
    if db_url.startswith("postgresql:"):
        return db_url.replace("postgresql:", "postgresql+asyncpg:", 1)
    return db_url


def create_engine(db_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(to_async_url(db_url), echo=echo, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create tables and indexes that do not exist yet"""
    import prizedrop.models.entry  # noqa: F401  registers the entries table
    import prizedrop.models.deposit  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
