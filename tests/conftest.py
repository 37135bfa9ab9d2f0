import os

os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///./fanledger-test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ALLOW_FAKE_PAYMENTS"] = "true"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from fanledger.db.models import Base
from fanledger.db.session import get_db
from fanledger.main import create_app
from fanledger.realtime.hub import EventHub

from factories import make_creator, make_fan


async def _create_engine(path, *, serialized: bool = False):
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    if serialized:
        # One writer at a time, taken at transaction start.
        @event.listens_for(engine.sync_engine, "connect")
        def _no_driver_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = await _create_engine(tmp_path / "ledger.db")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def serialized_engine(tmp_path):
    engine = await _create_engine(tmp_path / "ledger-serialized.db", serialized=True)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub():
    return EventHub()


@pytest.fixture
def events(hub):
    received = []
    hub.subscribe(received.append)
    return received


# -------- common fixtures --------

@pytest_asyncio.fixture
async def creator(db):
    return await make_creator(db)


@pytest_asyncio.fixture
async def fan(db, creator):
    return await make_fan(db, creator)


@pytest_asyncio.fixture
async def client(session_factory, hub):
    app = create_app(hub)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
