from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leave_grant.db import get_session
from leave_grant.main import app
from leave_grant.models import SQLModel
from leave_grant.services.employee import InMemoryEmployeeDirectory, set_employee_directory
from leave_grant.services.leave_type import InMemoryLeaveTypeCatalog, set_leave_type_catalog
from leave_grant.services.wizard import WizardRegistry, set_wizard_registry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create a fresh in-memory SQLite database with all tables for each test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session on the per-test database."""
    session = AsyncSession(bind=engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_collaborators() -> Iterator[None]:
    """Give every test an empty directory, the default catalog and no open wizards."""
    set_employee_directory(InMemoryEmployeeDirectory())
    set_leave_type_catalog(InMemoryLeaveTypeCatalog())
    set_wizard_registry(WizardRegistry())
    yield
    set_employee_directory(InMemoryEmployeeDirectory())
    set_leave_type_catalog(InMemoryLeaveTypeCatalog())
    set_wizard_registry(WizardRegistry())
