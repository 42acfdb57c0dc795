from __future__ import annotations

import os
from typing import TYPE_CHECKING

# Fall back to a local SQLite file when no PostgreSQL URL is configured.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_hr_ledger.db")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402

from hr_ledger.config import get_settings  # noqa: E402
from hr_ledger.db import get_session  # noqa: E402
from hr_ledger.main import app  # noqa: E402
from hr_ledger.models import SQLModel  # noqa: E402
from hr_ledger.services.employee import EmployeeInfo, InMemoryEmployeeDirectory, set_employee_directory  # noqa: E402
from hr_ledger.services.roles import InMemoryRoleResolver, RoleSnapshot, set_role_resolver  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

# Seeded organisation shared by every test module:
#   employees 7 and 8 and 11-15 work in Engineering, 9 in Sales
#   actor 100 manages Engineering, 101 manages Sales
#   actor 200 is the HRD manager, 300 the super-admin, 400 has no roles
ENGINEERING_EMPLOYEES = (7, 8, 11, 12, 13, 14, 15)


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create an async engine and ensure tables exist.

    In CI, Alembic migrations run before tests so create_all is a no-op.
    For local runs without prior migrations it serves as a fallback.
    """
    settings = get_settings()
    _engine = create_async_engine(settings.database_url)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session wrapped in a transaction that rolls back after each test."""
    async with engine.connect() as conn:
        txn = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        yield session
        await session.close()
        await txn.rollback()


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
def directory() -> Iterator[InMemoryEmployeeDirectory]:
    """Seed the in-memory employee directory for every test."""
    svc = InMemoryEmployeeDirectory()
    for employee_id in ENGINEERING_EMPLOYEES:
        svc.seed(
            EmployeeInfo(
                id=employee_id,
                full_name=f"Engineer {employee_id}",
                department="Engineering",
                department_manager_id=100,
            )
        )
    svc.seed(EmployeeInfo(id=9, full_name="Seller 9", department="Sales", department_manager_id=101))
    set_employee_directory(svc)
    yield svc
    set_employee_directory(InMemoryEmployeeDirectory())


@pytest.fixture(autouse=True)
def resolver() -> Iterator[InMemoryRoleResolver]:
    """Seed the in-memory role resolver for every test."""
    svc = InMemoryRoleResolver()
    for employee_id in (*ENGINEERING_EMPLOYEES, 9):
        svc.seed(RoleSnapshot(actor_id=employee_id, employee_id=employee_id))
    svc.seed(RoleSnapshot(actor_id=100, employee_id=100, managed_departments=frozenset({"Engineering"})))
    svc.seed(RoleSnapshot(actor_id=101, employee_id=101, managed_departments=frozenset({"Sales"})))
    svc.seed(RoleSnapshot(actor_id=200, employee_id=200, is_hrd_manager=True))
    svc.seed(RoleSnapshot(actor_id=300, is_super_admin=True))
    set_role_resolver(svc)
    yield svc
    set_role_resolver(InMemoryRoleResolver())
