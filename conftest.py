import os
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Settings are cached on first use; pin the test environment before any import reads them
os.environ.setdefault("ENVIRONMENT", "development")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("TIMEZONE", "America/Bogota")
os.environ.setdefault("CONTRACT_EXPIRY_WARNING_DAYS", "7")
os.environ["SMTP_USERNAME"] = ""
os.environ["SMTP_PASSWORD"] = ""

from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402

# Import all models so metadata includes every table
from services.contracts_service import models as _contract_models  # noqa: F401,E402
from services.members_service import models as _member_models  # noqa: F401,E402
from services.sessions_service import models as _session_models  # noqa: F401,E402

get_settings.cache_clear()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh SQLite database file per test, with every table created.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session configured like the application's session factory.
    Core operations commit; the database file is discarded after the test.
    """
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    session = session_factory()

    try:
        yield session
    finally:
        await session.close()


async def _client_for(app, db_session) -> AsyncGenerator[AsyncClient, None]:
    from libs.db.session import get_async_db

    app.dependency_overrides[get_async_db] = lambda: db_session
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def contracts_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient for the contracts service app with the DB dependency overridden.
    """
    from services.contracts_service.app.main import app

    async for ac in _client_for(app, db_session):
        yield ac


@pytest_asyncio.fixture
async def sessions_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient for the sessions service app with the DB dependency overridden.
    """
    from services.sessions_service.app.main import app

    async for ac in _client_for(app, db_session):
        yield ac
