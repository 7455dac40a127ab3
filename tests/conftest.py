import os

# Settings are chosen at import time; select the test profile before the app loads
os.environ.setdefault("MODE", "test")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from httpx import AsyncClient, ASGITransport

from main import app as fastapi_app
import db as project_db
import db_models  # ensure models are imported
from db_base import Base
from db_models.location import Location
from db_models.user import User, UserRole
from api.assets import db_manager as assets_db
from api.transitions.db_manager import TransitionEngine
from core.lifecycle import TransitionRules
from core.security import create_access_token


ADMIN_ID = 1
TECH_ID = 2
INACTIVE_ID = 3
STOCKROOM_ID = 1
CLOSED_LOCATION_ID = 2
BENCH_ID = 3


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db_engine(tmp_path):
    # Fresh SQLite file per test; every session gets its own connection
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'lifecycle.db'}",
        future=True,
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(db_engine):
    factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        session.add_all([
            User(id=ADMIN_ID, email="admin@test.com", full_name="Test Admin",
                 role=UserRole.ADMIN.value, is_active=True),
            User(id=TECH_ID, email="tech@test.com", full_name="Test Technician",
                 role=UserRole.USER.value, is_active=True),
            User(id=INACTIVE_ID, email="gone@test.com", full_name="Former Staff",
                 role=UserRole.USER.value, is_active=False),
            Location(id=STOCKROOM_ID, name="Stockroom", is_active=True),
            Location(id=CLOSED_LOCATION_ID, name="Closed Site", is_active=False),
            Location(id=BENCH_ID, name="Build Bench", is_active=True),
        ])
        await session.commit()
    return factory


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def rules():
    return TransitionRules.default()


@pytest.fixture
def transition_engine(rules):
    return TransitionEngine(rules)


@pytest.fixture
def make_asset(db_session, transition_engine):
    """Register an asset through the registry and return it."""
    counter = {"n": 0}

    async def _make(asset_type="LAPTOP", **kwargs):
        counter["n"] += 1
        kwargs.setdefault("serial_number", f"SN-{asset_type}-{counter['n']:04d}")
        kwargs.setdefault("description", f"Test {asset_type.lower()}")
        kwargs.setdefault("actor_id", ADMIN_ID)
        return await assets_db.create_asset(
            db_session,
            transition_engine,
            asset_type=asset_type,
            **kwargs,
        )

    return _make


@pytest.fixture
async def async_client(session_factory):
    # Override the get_session dependency to create a fresh session for each request
    async def override_get_session():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[project_db.get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://testserver") as ac:
        yield ac

    # Clean up
    fastapi_app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def admin_headers():
    """Return authorization headers for admin user."""
    token = create_access_token(data={"sub": str(ADMIN_ID)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def tech_headers():
    """Return authorization headers for a regular user."""
    token = create_access_token(data={"sub": str(TECH_ID)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def inactive_headers():
    token = create_access_token(data={"sub": str(INACTIVE_ID)})
    return {"Authorization": f"Bearer {token}"}
