"""Pytest configuration and fixtures."""

import pytest
from fakeredis import FakeServer
from fakeredis import aioredis as fake_aioredis
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from contactsync.core.auth import issue_user_token
from contactsync.core.phone import phone_hash_for
from contactsync.domain.services.abuse_guard import AbuseGuard
from contactsync.domain.services.contact_sync_service import ContactSyncService
from contactsync.infrastructure.rate_limiter import RedisRateLimiter
from contactsync.infrastructure.redis import RedisClient, redis_client
from contactsync.persistence.database import Base, get_db, get_session_factory
from contactsync.persistence.models import PhoneIdentity, User

ALICE_PHONE = "+1 (415) 555-0100"
BOB_PHONE = "+1 (415) 555-0101"
CAROL_PHONE = "+44 20 7946 0958"


@pytest.fixture
def database_path(tmp_path):
    # File-backed so every batch session sees the same database
    return tmp_path / "contactsync_test.db"


@pytest.fixture
async def engine(database_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database_path}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def rate_limiter(fake_redis):
    client = RedisClient()
    client.use_client(fake_redis)
    return RedisRateLimiter(client)


@pytest.fixture
def abuse_guard(rate_limiter):
    return AbuseGuard(rate_limiter)


@pytest.fixture
def make_user(db_session):
    """Factory for users, optionally discoverable by a phone number."""

    async def _make(display_name: str | None = None, email: str | None = None, phone: str | None = None) -> User:
        user = User(display_name=display_name, email=email)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        if phone is not None:
            db_session.add(PhoneIdentity(phone_hash=phone_hash_for(phone), user_id=user.id))
            await db_session.commit()
        return user

    return _make


# ============== API fixtures ==============
#
# TestClient runs the app on its own event loop, so API tests are plain sync
# tests: the schema and seed users are written with a sync engine, and the app
# gets a NullPool async engine that only ever connects from the app's loop.


@pytest.fixture
def api_users(database_path):
    sync_engine = create_engine(f"sqlite:///{database_path}")
    Base.metadata.create_all(sync_engine)
    with Session(sync_engine) as session:
        alice = User(display_name="Alice Anders", email="alice@example.com")
        bob = User(display_name="Bob Brown", email="bob@example.com")
        carol = User(display_name="Carol Chen", email="carol@example.com")
        session.add_all([alice, bob, carol])
        session.flush()
        session.add_all([
            PhoneIdentity(phone_hash=phone_hash_for(ALICE_PHONE), user_id=alice.id),
            PhoneIdentity(phone_hash=phone_hash_for(BOB_PHONE), user_id=bob.id),
            PhoneIdentity(phone_hash=phone_hash_for(CAROL_PHONE), user_id=carol.id),
        ])
        session.commit()
        users = {"alice": alice.id, "bob": bob.id, "carol": carol.id}
    sync_engine.dispose()
    return users


@pytest.fixture
def client(database_path, api_users):
    """Create a test FastAPI client."""
    from fastapi.testclient import TestClient

    from contactsync.api.deps import get_contact_sync_service
    from contactsync.main import app

    engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}", poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    def override_sync_service():
        return ContactSyncService(factory, AbuseGuard(RedisRateLimiter(redis_client)), concurrency=1)

    redis_client.use_client(fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True))
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    app.dependency_overrides[get_contact_sync_service] = override_sync_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(api_users):
    """Bearer headers per seeded user name."""
    return {
        name: {"Authorization": f"Bearer {issue_user_token(user_id)}"}
        for name, user_id in api_users.items()
    }
