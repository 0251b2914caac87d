"""
Shared fixtures: test settings, in-memory stores, a mocked mailer and an
app wired to an in-memory SQLite database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth.jwt import TokenCodec
from auth.password import PasswordHasher
from auth.service import SessionService
from auth.store import RefreshTokenStore, UserStore, normalize_email
from config.settings import Settings
from database.models import Base, RefreshToken, User
from database.session import get_db_session


class InMemoryUserStore(UserStore):
    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.update_calls = 0

    async def get(self, user_id: str) -> Optional[User]:
        return self.users.get(str(user_id))

    async def get_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        return next((u for u in self.users.values() if u.email == email), None)

    async def insert(self, user: User) -> User:
        self.users[str(user.user_id)] = user
        return user

    async def update(self, user_id: str, **fields: Any) -> Optional[User]:
        user = self.users.get(str(user_id))
        if user is None:
            return None
        self.update_calls += 1
        for name, value in fields.items():
            setattr(user, name, value)
        return user


class InMemoryRefreshTokenStore(RefreshTokenStore):
    def __init__(self) -> None:
        self.records: Dict[str, RefreshToken] = {}

    @staticmethod
    def _live(record: RefreshToken) -> bool:
        return record.exp > datetime.now(timezone.utc)

    async def insert(self, record: RefreshToken) -> RefreshToken:
        self.records[record.token] = record
        return record

    async def find_by_token(self, token: str) -> Optional[RefreshToken]:
        record = self.records.get(token)
        return record if record is not None and self._live(record) else None

    async def delete_by_token(self, token: str) -> bool:
        record = self.records.pop(token, None)
        return record is not None and self._live(record)

    async def purge_expired(self) -> int:
        expired = [t for t, r in self.records.items() if not self._live(r)]
        for token in expired:
            del self.records[token]
        return len(expired)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_access_token_secret="test-access-token-secret-0123456789abcdef",
        jwt_refresh_token_secret="test-refresh-token-secret-0123456789abcdef",
        jwt_verify_email_token_secret="test-verify-email-secret-0123456789abcdef",
        jwt_forgot_password_token_secret="test-forgot-password-secret-0123456789abcd",
        password_secret="test-password-secret",
        resend_api_key="",
        cors_origins=["*"],
    )


@pytest.fixture
def codec(settings) -> TokenCodec:
    return TokenCodec.from_settings(settings)


@pytest.fixture
def hasher(settings) -> PasswordHasher:
    return PasswordHasher.from_settings(settings)


@pytest.fixture
def mailer() -> MagicMock:
    mock = MagicMock()
    mock.send_verify_email = AsyncMock(return_value=None)
    mock.send_forgot_password_email = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def refresh_store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture
def service(codec, hasher, user_store, refresh_store, mailer) -> SessionService:
    return SessionService(codec, hasher, user_store, refresh_store, mailer)


# ── SQLite-backed fixtures ─────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine, settings, mailer):
    from main import create_app

    app = create_app(settings, email_sender=mailer)
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def _session_override():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
