from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from warehouse_api.main import app
from warehouse_api.database import Base, get_db
from warehouse_api.api.deps import create_access_token
from warehouse_api.models import Product, Shelf

from factories import ProductFactory, BulkProductFactory, ShelfFactory

ACTOR_ID = "clerk-7"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-backed SQLite per test so separate sessions really are separate connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'warehouse_test.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(session_factory):
    """Two products (kg and pcs) and three shelves."""
    async with session_factory() as session:
        flour = Product(**BulkProductFactory(name="Flour"))
        bolts = Product(**ProductFactory(name="Bolts M8"))
        shelves = [Shelf(**ShelfFactory()) for _ in range(3)]
        session.add_all([flour, bolts, *shelves])
        await session.commit()

        return SimpleNamespace(
            flour_id=flour.id,
            bolts_id=bolts.id,
            shelf_x=shelves[0].id,
            shelf_y=shelves[1].id,
            shelf_z=shelves[2].id,
        )


@pytest.fixture
def actor_id():
    return ACTOR_ID


@pytest_asyncio.fixture
async def client(session_factory):
    """Create test client with overridden database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": ACTOR_ID})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient, auth_headers):
    """Create authenticated test client."""
    client.headers.update(auth_headers)
    return client
