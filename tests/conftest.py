import random
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shortener.api.deps import Stores, get_stores, new_stores
from shortener.database import Base
from shortener.main import app
from shortener.models import Link
from shortener.utils import TokenGenerator


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    # One shared in-memory SQLite connection per test, so every session sees the same data.
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def tokens() -> TokenGenerator:
    return TokenGenerator(length=5, max_attempts=10, rng=random.Random(1234))


@pytest.fixture
def stores(session_factory, tokens) -> Stores:
    return new_stores(session_factory, tokens=tokens)


@pytest.fixture
def make_link():
    def _make(name: str = "HeroIcons", destination: str = "https://heroicons.com/", token=None) -> Link:
        return Link(name=name, destination=destination, token=token)

    return _make


@pytest.fixture
async def client(stores) -> AsyncGenerator[AsyncClient, None]:
    # ASGITransport does not run the lifespan, so the stores are injected directly.
    app.dependency_overrides[get_stores] = lambda: stores

    async with ASGITransport(app=app) as transport:
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c

    app.dependency_overrides.clear()


class BrokenSession:
    """Session stand-in whose every query fails the way a dropped connection does."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT links.id FROM links", {}, ConnectionRefusedError("db-host:5432 refused"))

    async def get(self, *args, **kwargs):
        return await self.execute()


@pytest.fixture
def broken_session_factory():
    return BrokenSession
