"""
Pytest fixtures for accounts service tests.
"""

import os

# Must be set before anything imports src.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TOKEN_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.kernel.identity import (
    CredentialService,
    FrozenClock,
    PasswordHasher,
    SqlAccountStore,
    TokenCodec,
    TokenSettings,
)
from src.kernel.models import Account, Base


# In-memory database shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SECRET = "test-secret-key-for-testing-only"

# Cheapest bcrypt cost so the suite stays fast
TEST_BCRYPT_ROUNDS = 4


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def codec(clock: FrozenClock) -> TokenCodec:
    return TokenCodec(clock=clock)


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(
        secret_key=SecretStr(TEST_SECRET),
        issuer="test-issuer",
        access_token_lifetime=timedelta(minutes=15),
        refresh_token_lifetime=timedelta(days=30),
    )


@pytest.fixture
def account_store(db_session: AsyncSession) -> SqlAccountStore:
    return SqlAccountStore(db_session)


@pytest.fixture
def credential_service(
    account_store: SqlAccountStore,
    token_settings: TokenSettings,
    hasher: PasswordHasher,
    codec: TokenCodec,
    clock: FrozenClock,
) -> CredentialService:
    return CredentialService(
        store=account_store,
        token_settings=token_settings,
        hasher=hasher,
        codec=codec,
        clock=clock,
        timeout=5.0,
    )


@pytest_asyncio.fixture
async def test_account(credential_service: CredentialService) -> Account:
    """Register a test account and return it."""
    await credential_service.register(
        name="Ada",
        surname="Lovelace",
        email="ada@example.com",
        password="Engine1843",
        phone="+441234567890",
    )
    return await credential_service.get_user(email="ada@example.com")
