from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

# Base Model Class
class Base(DeclarativeBase):
    pass

def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        **kwargs
    )

def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )

async def create_tables(engine: AsyncEngine):
    # Models must be imported so their tables are registered on Base.metadata
    from carpal.models import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
