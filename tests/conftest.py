import os

os.environ.setdefault("HP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("HP_ENVIRONMENT", "test")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from hiring_pipeline.db.session import build_engine, build_session_factory
from hiring_pipeline.models import Base
from hiring_pipeline.services.locks import ApplicationLockRegistry


@pytest.fixture()
async def async_engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine):
    return build_session_factory(async_engine)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def locks():
    return ApplicationLockRegistry(timeout_seconds=2.0)


@pytest.fixture()
async def client(session_factory):
    from hiring_pipeline.api import deps
    from hiring_pipeline.main import app

    async def _override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db_session] = _override_session
    app.state.lock_registry = ApplicationLockRegistry(timeout_seconds=2.0)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
