from functools import partial

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from nephrocare.cache import CacheClient
from nephrocare.config import Settings
from nephrocare.database import Database
from nephrocare.di import ServiceContainer
from nephrocare.main import create_app
from nephrocare.rate_limit import FixedWindowRateLimiter
from tests.fixtures import TEST_SECRET, PatientFactory
from tests.mocks import FakeClock, MockRedisClient


@pytest.fixture(scope="session")
def anyio_backend():
    """Restrict anyio tests to the asyncio backend."""

    yield "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def redis_client(clock):
    return MockRedisClient(clock=clock)


@pytest.fixture
def cache(redis_client):
    return CacheClient(redis_client)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'nephrocare-test.db'}"


@pytest_asyncio.fixture
async def database(database_url):
    """Temporary SQLite database with the schema created."""

    db = Database(database_url)
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture(autouse=True)
def _reset_factory():
    PatientFactory.reset()


@pytest.fixture
def test_settings(database_url):
    return Settings(
        database_url=database_url,
        session_secret=TEST_SECRET,
        rate_limit_requests=50,
        rate_limit_window_seconds=60,
        cors_origins=["http://testserver"],
    )


@pytest.fixture
def container(test_settings, redis_client, clock):
    """Container wired to the temp database and the in-memory Redis double."""

    service_container = ServiceContainer(test_settings, create_schema=True)
    service_container.redis = redis_client
    service_container.rate_limiter = FixedWindowRateLimiter(redis_client, clock=clock)
    return service_container


@pytest.fixture
def app(container):
    return create_app(container=container)


@pytest.fixture
def dependency_overrides_guard(app):
    """Save and restore FastAPI dependency overrides for each test."""

    original_overrides = dict(app.dependency_overrides)

    try:
        yield app.dependency_overrides
    finally:
        app.dependency_overrides = original_overrides



@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seed(client):
    """Run an async seeding call on the app's event loop."""

    def _seed(factory_method, *args, **kwargs):
        return client.portal.call(partial(factory_method, *args, **kwargs))

    return _seed
