import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-backoffice-tests")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_backoffice.db")

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from backoffice.database import Base, get_db, configure_sqlite_engine
from backoffice.main import app
from backoffice.models.tenant import Company, Gym, Staff
import backoffice.models  # noqa: F401
from tests.factories import create_staff, login_headers


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    engine = configure_sqlite_engine(
        create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'backoffice.db'}", poolclass=NullPool)
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def company(db_session) -> Company:
    company = Company(name="Test Fitness")
    db_session.add(company)
    await db_session.commit()
    return company


@pytest.fixture
async def gym(db_session, company) -> Gym:
    gym = Gym(company_id=company.id, name="Main Branch")
    db_session.add(gym)
    await db_session.commit()
    return gym


@pytest.fixture
async def other_gym(db_session, company) -> Gym:
    gym = Gym(company_id=company.id, name="Second Branch")
    db_session.add(gym)
    await db_session.commit()
    return gym


@pytest.fixture
async def admin(db_session, gym) -> Staff:
    return await create_staff(db_session, email="admin@gym.com", gym=gym, name="관리자")


@pytest.fixture
async def admin_headers(client, admin) -> dict:
    return await login_headers(client, "admin@gym.com")

