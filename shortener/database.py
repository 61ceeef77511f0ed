from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from .config import settings

def build_engine(url: str = settings.DATABASE_URL) -> AsyncEngine:
    connect_args = {}
    if url.startswith("postgresql+asyncpg"):
        # Day buckets are computed in UTC on the server side
        connect_args["server_settings"] = {"timezone": "UTC"}
    return create_async_engine(
        url,
        echo=settings.ENVIRONMENT == "development" and settings.LOG_LEVEL.upper() == "DEBUG",
        pool_size=settings.DB_POOL_SIZE,
        pool_recycle=settings.DB_POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

engine = build_engine()
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

class Base(DeclarativeBase):
    pass
