"""
Pydantic schemas and enums shared across the auth service.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class TokenType(str, Enum):
    """Token classes. Each one is signed with its own secret."""

    ACCESS = "access"
    REFRESH = "refresh"
    VERIFY_EMAIL = "verify_email"
    FORGOT_PASSWORD = "forgot_password"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class UserVerifyStatus(str, Enum):
    """Email verification lifecycle."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    BANNED = "banned"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ═══════════════════════════════════════════════════════════════════════════════
# Token payload
# ═══════════════════════════════════════════════════════════════════════════════


class TokenPayload(BaseModel):
    """
    Claims recovered from a verified token.

    Never persisted; rebuilt from the token on every request.
    ``role`` / ``verify`` / ``status`` are only present on access and
    refresh tokens.
    """

    user_id: str
    token_type: TokenType
    role: Optional[UserRole] = None
    verify: Optional[UserVerifyStatus] = None
    status: Optional[UserStatus] = None
    iat: int
    exp: int
    jti: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# User views
# ═══════════════════════════════════════════════════════════════════════════════


class UserView(BaseModel):
    """Public projection of a ``User`` row: no password, tokens or flags."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserView":
        return cls(
            user_id=str(user.user_id),
            email=user.email,
            name=user.name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class AuthResult(TokenPair):
    """Token pair plus the sanitized user, when the flow returns one."""

    user: Optional[UserView] = None
