"""
Persistence contracts for the auth service and their SQLAlchemy
implementations.

The service only talks to ``UserStore`` / ``RefreshTokenStore``; route
dependencies bind the SQL implementations to the request's session.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import RefreshToken, User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# ═══════════════════════════════════════════════════════════════════════════════
# Contracts
# ═══════════════════════════════════════════════════════════════════════════════


class UserStore(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def insert(self, user: User) -> User:
        ...

    @abstractmethod
    async def update(self, user_id: str, **fields: Any) -> Optional[User]:
        """Apply ``fields`` and return the updated user, or None if absent."""


class RefreshTokenStore(ABC):
    @abstractmethod
    async def insert(self, record: RefreshToken) -> RefreshToken:
        ...

    @abstractmethod
    async def find_by_token(self, token: str) -> Optional[RefreshToken]:
        """Return the live (unexpired) record for ``token``."""

    @abstractmethod
    async def delete_by_token(self, token: str) -> bool:
        """
        Atomically remove the live record for ``token``.

        Returns True only for the caller that actually removed it.
        """

    @abstractmethod
    async def purge_expired(self) -> int:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy implementations
# ═══════════════════════════════════════════════════════════════════════════════


class SqlUserStore(UserStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> Optional[User]:
        uid = _to_uuid(user_id)
        if uid is None:
            return None
        return await self._session.get(User, uid)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self._session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def insert(self, user: User) -> User:
        now = _utcnow()
        user.email = normalize_email(user.email)
        user.created_at = user.created_at or now
        user.updated_at = user.updated_at or now
        self._session.add(user)
        await self._session.flush()
        return user

    async def update(self, user_id: str, **fields: Any) -> Optional[User]:
        user = await self.get(user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        user.updated_at = _utcnow()
        await self._session.flush()
        return user


class SqlRefreshTokenStore(RefreshTokenStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert(self, record: RefreshToken) -> RefreshToken:
        record.created_at = record.created_at or _utcnow()
        self._session.add(record)
        await self._session.flush()
        return record

    async def find_by_token(self, token: str) -> Optional[RefreshToken]:
        result = await self._session.execute(
            select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.exp > _utcnow(),
            )
        )
        return result.scalar_one_or_none()

    async def delete_by_token(self, token: str) -> bool:
        # One conditional DELETE: the row count decides which concurrent
        # caller consumed the token.
        result = await self._session.execute(
            delete(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.exp > _utcnow())
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0

    async def purge_expired(self) -> int:
        result = await self._session.execute(
            delete(RefreshToken)
            .where(RefreshToken.exp <= _utcnow())
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.info("Purged %d expired refresh tokens", count)
        return count
