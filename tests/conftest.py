"""
Shared pytest fixtures.

Every test runs against its own in-memory SQLite database with foreign
keys enforced.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-game-lab-0123456789abcdef")
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

from typing import AsyncGenerator, Callable, Dict  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.security import create_access_token  # noqa: E402
from app.infrastructure.database import models  # noqa: E402,F401
from app.infrastructure.database.base import Base, build_session_factory  # noqa: E402
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work  # noqa: E402
from tests.fixtures.tenancy import TenancyTestData, build_tenancy  # noqa: E402


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
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
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def uow(session_factory) -> AsyncGenerator[UnitOfWork, None]:
    """Open unit of work over the test database."""
    async with UnitOfWork(session_factory) as uow:
        yield uow


@pytest_asyncio.fixture
async def tenancy(uow) -> TenancyTestData:
    """Standard institution/workshop hierarchy with one user per role."""
    return await build_tenancy(uow)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the API, bound to the test database."""
    from app.main import app

    async def _test_unit_of_work() -> AsyncGenerator[UnitOfWork, None]:
        async with UnitOfWork(session_factory) as uow:
            yield uow

    app.dependency_overrides[get_unit_of_work] = _test_unit_of_work
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[UUID], Dict[str, str]]:
    """Build bearer headers for a user."""

    def _headers(user_id: UUID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}

    return _headers
