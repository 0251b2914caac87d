"""
FastAPI dependencies for authentication and authorization.

Every validator fills one slot of the per-request ``AuthContext`` (FastAPI
caches ``get_auth_context`` per request, so all validators on a route
share one instance) and returns it.  Failures raise ``UnauthorizedError``
or ``ForbiddenError`` before the route handler runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import Body, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import messages
from auth.email import EmailSender
from auth.errors import ForbiddenError, NotFoundError, UnauthorizedError
from auth.jwt import TokenCodec, TokenError, TokenExpiredError
from auth.models import User
from auth.password import PasswordHasher
from auth.service import SessionService
from auth.store import RefreshTokenStore, SqlRefreshTokenStore, SqlUserStore, UserStore
from database.session import get_db_session
from utils.schemas import TokenPayload, TokenType, UserRole, UserStatus, UserVerifyStatus

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    """Decoded tokens for the current request, one slot per token type."""

    authorization: Optional[TokenPayload] = None
    refresh_token: Optional[TokenPayload] = None
    verify_email_token: Optional[TokenPayload] = None
    forgot_password_token: Optional[TokenPayload] = None
    raw_refresh_token: Optional[str] = None
    user: Optional[User] = None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=5, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=5, max_length=255)


# ── Collaborators ──────────────────────────────────────────────────────


def get_auth_context() -> AuthContext:
    return AuthContext()


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_user_store(session: AsyncSession = Depends(db_session)) -> UserStore:
    return SqlUserStore(session)


def get_refresh_token_store(session: AsyncSession = Depends(db_session)) -> RefreshTokenStore:
    return SqlRefreshTokenStore(session)


def get_session_service(
    codec: TokenCodec = Depends(get_token_codec),
    hasher: PasswordHasher = Depends(get_password_hasher),
    users: UserStore = Depends(get_user_store),
    refresh_tokens: RefreshTokenStore = Depends(get_refresh_token_store),
    mailer: EmailSender = Depends(get_email_sender),
) -> SessionService:
    return SessionService(codec, hasher, users, refresh_tokens, mailer)


# ── Token validators ───────────────────────────────────────────────────


def decode_or_401(codec: TokenCodec, token: str, token_type: TokenType) -> TokenPayload:
    """Verify ``token`` and translate codec failures into ``UnauthorizedError``."""
    try:
        return codec.verify(token, token_type)
    except TokenError as exc:
        logger.debug("Rejected %s token: %s (%s)", token_type.value, exc.reason, exc)
        message = messages.TOKEN_EXPIRED if isinstance(exc, TokenExpiredError) else messages.TOKEN_INVALID
        raise UnauthorizedError(message, reason=exc.reason) from exc


async def access_token_validator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Verify the ``Authorization: Bearer`` access token."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(messages.ACCESS_TOKEN_REQUIRED, reason="missing")
    ctx.authorization = decode_or_401(codec, credentials.credentials, TokenType.ACCESS)
    return ctx


async def refresh_token_validator(
    refresh_token: Optional[str] = Body(None, embed=True),
    codec: TokenCodec = Depends(get_token_codec),
    store: RefreshTokenStore = Depends(get_refresh_token_store),
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Verify the body's refresh token and require a live store record."""
    if not refresh_token:
        raise UnauthorizedError(messages.REFRESH_TOKEN_REQUIRED, reason="missing")
    payload = decode_or_401(codec, refresh_token, TokenType.REFRESH)
    if await store.find_by_token(refresh_token) is None:
        raise UnauthorizedError(messages.REFRESH_TOKEN_NOT_FOUND, reason="not_found")
    ctx.refresh_token = payload
    ctx.raw_refresh_token = refresh_token
    return ctx


async def verify_email_token_validator(
    verify_email_token: Optional[str] = Body(None, embed=True),
    codec: TokenCodec = Depends(get_token_codec),
    users: UserStore = Depends(get_user_store),
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """
    Verify the body's email-verification token.

    The token must be the one currently stored on the user.  A verified
    user with a cleared token passes through so the route can answer
    "already verified" without issuing anything.
    """
    if not verify_email_token:
        raise UnauthorizedError(messages.VERIFY_EMAIL_TOKEN_REQUIRED, reason="missing")
    payload = decode_or_401(codec, verify_email_token, TokenType.VERIFY_EMAIL)
    user = await users.get(payload.user_id)
    if user is None:
        raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
    already_verified = user.verify == UserVerifyStatus.VERIFIED.value and not user.verify_email_token
    if not already_verified and user.verify_email_token != verify_email_token:
        raise UnauthorizedError(messages.VERIFY_EMAIL_TOKEN_MISMATCH, reason="token_mismatch")
    ctx.verify_email_token = payload
    ctx.user = user
    return ctx


async def forgot_password_token_validator(
    forgot_password_token: Optional[str] = Body(None, embed=True),
    codec: TokenCodec = Depends(get_token_codec),
    users: UserStore = Depends(get_user_store),
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Verify the body's forgot-password token against the stored one."""
    if not forgot_password_token:
        raise UnauthorizedError(messages.FORGOT_PASSWORD_TOKEN_REQUIRED, reason="missing")
    payload = decode_or_401(codec, forgot_password_token, TokenType.FORGOT_PASSWORD)
    user = await users.get(payload.user_id)
    if user is None:
        raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
    if user.forgot_password_token != forgot_password_token:
        raise UnauthorizedError(messages.FORGOT_PASSWORD_TOKEN_MISMATCH, reason="token_mismatch")
    ctx.forgot_password_token = payload
    ctx.user = user
    return ctx


# ── Credential / lookup validators ─────────────────────────────────────


async def login_validator(
    req: LoginRequest,
    users: UserStore = Depends(get_user_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    user = await users.get_by_email(req.email)
    # Same failure for unknown email and wrong password
    if user is None or not hasher.verify(req.password, user.password_hash):
        raise UnauthorizedError(messages.EMAIL_OR_PASSWORD_INCORRECT, reason="invalid_credentials")
    ctx.user = user
    return ctx


async def forgot_password_validator(
    req: ForgotPasswordRequest,
    users: UserStore = Depends(get_user_store),
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    user = await users.get_by_email(req.email)
    if user is None:
        raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
    ctx.user = user
    return ctx


# ── Authorization gates ────────────────────────────────────────────────


async def verified_user_validator(
    ctx: AuthContext = Depends(access_token_validator),
) -> AuthContext:
    """Require a verified, active account (from the access token claims)."""
    claims = ctx.authorization
    if claims.verify == UserVerifyStatus.BANNED:
        raise ForbiddenError(messages.USER_BANNED, reason="user_banned")
    if claims.verify != UserVerifyStatus.VERIFIED:
        raise ForbiddenError(messages.USER_NOT_VERIFIED, reason="user_not_verified")
    if claims.status != UserStatus.ACTIVE:
        raise ForbiddenError(messages.USER_INACTIVE, reason="user_inactive")
    return ctx


async def is_admin_validator(
    ctx: AuthContext = Depends(access_token_validator),
) -> AuthContext:
    if ctx.authorization.role != UserRole.ADMIN:
        raise ForbiddenError(messages.ADMIN_REQUIRED, reason="admin_required")
    return ctx
