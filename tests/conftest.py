"""
tests.conftest

Shared fixtures: a throwaway SQLite database per test, its sessionmaker, and seeding helpers.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from uow_kit.db.init_db import drop_db, init_db
from uow_kit.db.models import Blog, Post
from uow_kit.db.session import create_engine, create_sessionmaker
from uow_kit.db.unit_of_work import UnitOfWork
from uow_kit.settings import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    # File-backed so that several units of work get separate connections to one database.
    return Settings(env="test", database_url=f"sqlite+aiosqlite:///{tmp_path / 'uow.db'}")


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_sessionmaker(engine)


@pytest_asyncio.fixture
async def uow(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[UnitOfWork]:
    async with UnitOfWork(sessionmaker) as uow:
        yield uow


@pytest.fixture
def make_blog(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Blog]]:
    """Commit a blog (and optional posts) in its own unit of work; returns it detached."""

    async def _make(name: str = "A", posts: Sequence[str] = ()) -> Blog:
        async with UnitOfWork(sessionmaker) as seed:
            blog = Blog(name=name, posts=[Post(title=title) for title in posts])
            seed.repository(Blog).add(blog)
            await seed.commit()
            return blog

    return _make
