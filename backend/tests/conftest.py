"""Root conftest for engine, API and repository tests.

Provides:
- In-memory SQLite database (replaces production engine)
- In-memory document store standing in for MongoDB
- FastAPI AsyncClient with the store and run manager overridden
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import app.database as db_module
from app.database import Base

# Import all ORM models so they register with Base.metadata
import app.models.db  # noqa: F401

from flowengine.store import InMemoryDocumentStore


# ---------------------------------------------------------------------------
# In-memory async SQLite engine (StaticPool shares one connection)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Per-test database session with automatic rollback."""
    factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    async with factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Document store and run manager
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def run_manager():
    from app.run_manager import RunManager

    return RunManager()


# ---------------------------------------------------------------------------
# FastAPI test client: patches the DB engine and overrides dependencies
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    test_engine: AsyncEngine,
    memory_store: InMemoryDocumentStore,
    run_manager,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI routes.

    ASGITransport does not run the app lifespan, so the database engine is
    swapped for the in-memory one here and the document store dependency
    is pointed at memory_store.
    """
    from app.dependencies import get_document_store
    from app.main import app
    from app.run_manager import get_run_manager

    original_engine = db_module.engine
    original_factory = db_module.async_session_factory

    db_module.engine = test_engine
    db_module.async_session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    app.dependency_overrides[get_document_store] = lambda: memory_store
    app.dependency_overrides[get_run_manager] = lambda: run_manager

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
        db_module.engine = original_engine
        db_module.async_session_factory = original_factory
