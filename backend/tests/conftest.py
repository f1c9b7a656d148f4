"""
Shared test fixtures and configuration for the HSE Portal backend tests.

Service tests run against a throwaway SQLite database (aiosqlite) created
per test from the ORM metadata; API tests drive the FastAPI app in-process
through httpx with the database dependencies overridden.
"""
import os
import tempfile
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="hse-storage-")

from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.models.company import Company, UserRoleAssignment, ROLE_COMPANY_ADMIN  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.realtime import ChangeBroadcaster  # noqa: E402
from app.services.storage import LocalStorageBackend  # noqa: E402
from app.services.tenant_context import TenantContext  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh on-disk SQLite database with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hse.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _seed_company(db, name: str, email: str, admin_email: str, admin_name: str, max_employees: int = 5):
    company = Company(
        name=name,
        email=email,
        subscription_tier="basic",
        subscription_status="active",
        max_employees=max_employees,
        subscription_start_date=date(2024, 1, 1),
    )
    user = User(email=admin_email, full_name=admin_name, hashed_password=get_password_hash(TEST_PASSWORD))
    db.add_all([company, user])
    await db.flush()
    db.add(UserRoleAssignment(user_id=user.id, role=ROLE_COMPANY_ADMIN, company_id=company.id))
    await db.commit()
    return company, user


@pytest_asyncio.fixture
async def tenant_a(db):
    """Company A with its administrator."""
    return await _seed_company(db, "Acme Safety", "hse@acme.example.com", "admin@acme.example.com", "Alice Admin")


@pytest_asyncio.fixture
async def tenant_b(db):
    """Company B with its administrator."""
    return await _seed_company(db, "Beta Works", "hse@beta.example.com", "admin@beta.example.com", "Bob Boss")


def _context(company: Company, user: User) -> TenantContext:
    return TenantContext(
        user_id=user.id,
        company_id=company.id,
        role=ROLE_COMPANY_ADMIN,
        actor_name=user.full_name,
        company_name=company.name,
    )


@pytest.fixture
def ctx_a(tenant_a) -> TenantContext:
    return _context(*tenant_a)


@pytest.fixture
def ctx_b(tenant_b) -> TenantContext:
    return _context(*tenant_b)


@pytest.fixture
def broadcaster():
    broadcaster = ChangeBroadcaster()
    yield broadcaster
    broadcaster.close_all()


@pytest.fixture
def storage(tmp_path):
    return LocalStorageBackend(str(tmp_path / "storage"), "documents", "/storage")


@pytest_asyncio.fixture
async def client(session_factory, broadcaster):
    """HTTP client bound to the app, with the test database behind every route."""
    from app.api import deps
    from app.core.rate_limiter import limiter
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_broadcaster] = lambda: broadcaster
    limiter.enabled = False
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


@pytest.fixture
def admin_password() -> str:
    """Password of both seeded administrators."""
    return TEST_PASSWORD


@pytest.fixture
def auth_headers_a(tenant_a) -> dict:
    _, user = tenant_a
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def auth_headers_b(tenant_b) -> dict:
    _, user = tenant_b
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_request():
    """Create a mock FastAPI request."""
    request = MagicMock()
    request.method = "GET"
    request.url.path = "/api/v1/test"
    request.headers = {"User-Agent": "pytest"}
    request.client.host = "127.0.0.1"
    request.cookies = {}
    return request
