# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from taskboard.core import database
from taskboard.core.security import TokenClaims
from taskboard.main import app
from taskboard.models.user import User


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    """A throwaway SQLite file per test; NullPool so no connection outlives its event loop."""
    return f"sqlite+aiosqlite:///{tmp_path / 'taskboard.db'}"


@pytest_asyncio.fixture()
async def session(db_url: str):
    engine = create_async_engine(db_url, poolclass=NullPool)
    await database.init_models(engine)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as s:
        yield s
    await engine.dispose()


@pytest_asyncio.fixture()
async def alice(session: AsyncSession) -> TokenClaims:
    return await _add_user(session, "Alice", "alice@example.com")


@pytest_asyncio.fixture()
async def bob(session: AsyncSession) -> TokenClaims:
    return await _add_user(session, "Bob", "bob@example.com")


async def _add_user(session: AsyncSession, name: str, email: str) -> TokenClaims:
    user = User(name=name, email=email, hashed_password="not-a-real-hash")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return TokenClaims(user_id=user.id, email=user.email, name=user.name)


@pytest.fixture()
def client(db_url: str, monkeypatch: pytest.MonkeyPatch):
    """
    TestClient wired to a per-test database.

    The app's startup hook creates the tables, so the engine is swapped in
    before the client starts.
    """
    engine = create_async_engine(db_url, poolclass=NullPool)
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(
        database,
        "AsyncSessionLocal",
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
    )
    with TestClient(app) as c:
        yield c
