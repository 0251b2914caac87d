"""
Session issuance: register, login, logout, refresh rotation, email
verification and password reset.

``SessionService`` is built per request from long-lived collaborators
(codec, hasher, email sender) and stores bound to the request's DB
session.  It never swallows store, codec or email errors.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from auth import messages
from auth.email import EmailSender
from auth.errors import ConflictError, ForbiddenError, NotFoundError
from auth.jwt import TokenCodec
from auth.models import RefreshToken, User
from auth.password import PasswordHasher
from auth.store import RefreshTokenStore, UserStore, normalize_email
from utils.schemas import (
    AuthResult,
    TokenPair,
    TokenPayload,
    TokenType,
    UserRole,
    UserStatus,
    UserVerifyStatus,
    UserView,
)

logger = logging.getLogger(__name__)


def _from_timestamp(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class SessionService:
    def __init__(
        self,
        codec: TokenCodec,
        hasher: PasswordHasher,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        mailer: EmailSender,
    ) -> None:
        self.codec = codec
        self.hasher = hasher
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.mailer = mailer

    # ── Token helpers ──────────────────────────────────────────────────

    async def _issue_token_pair(
        self,
        *,
        user_id: str,
        role: UserRole,
        verify: UserVerifyStatus,
        status: UserStatus,
        exp: Optional[int] = None,
    ) -> TokenPair:
        """
        Sign an access + refresh pair and persist the refresh record.

        ``exp`` pins the refresh token's absolute expiry (rotation).
        """
        access_token = self.codec.sign(
            TokenType.ACCESS, user_id=user_id, role=role, verify=verify, status=status
        )
        refresh_token, claims = self.codec.sign_with_claims(
            TokenType.REFRESH, user_id=user_id, role=role, verify=verify, status=status, exp=exp
        )
        await self.refresh_tokens.insert(
            RefreshToken(
                token=refresh_token,
                user_id=uuid.UUID(str(user_id)),
                iat=_from_timestamp(claims.iat),
                exp=_from_timestamp(claims.exp),
            )
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def _issue_for_user(self, user: User) -> TokenPair:
        return await self._issue_token_pair(
            user_id=str(user.user_id),
            role=UserRole(user.role),
            verify=UserVerifyStatus(user.verify),
            status=UserStatus(user.status),
        )

    # ── Flows ──────────────────────────────────────────────────────────

    async def register(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        email = normalize_email(email)
        if await self.users.get_by_email(email) is not None:
            raise ConflictError(messages.EMAIL_ALREADY_EXISTS, reason="email_already_exists")

        user_id = uuid.uuid4()
        verify_email_token = self.codec.sign(TokenType.VERIFY_EMAIL, user_id=str(user_id))
        user = await self.users.insert(
            User(
                user_id=user_id,
                email=email,
                name=name,
                password_hash=self.hasher.hash(password),
                role=UserRole.USER.value,
                verify=UserVerifyStatus.UNVERIFIED.value,
                status=UserStatus.ACTIVE.value,
                verify_email_token=verify_email_token,
                forgot_password_token="",
            )
        )
        await self.mailer.send_verify_email(email, verify_email_token)

        tokens = await self._issue_for_user(user)
        logger.info("Registered user %s", user.user_id)
        return AuthResult(**tokens.model_dump(), user=UserView.from_user(user))

    async def login(self, user: User) -> TokenPair:
        """Issue a session for a user whose credentials were already checked."""
        tokens = await self._issue_for_user(user)
        logger.info("Login: %s", user.user_id)
        return tokens

    async def resend_email_verify(self, user_id: str) -> None:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")

        verify_email_token = self.codec.sign(TokenType.VERIFY_EMAIL, user_id=str(user.user_id))
        await self.users.update(user_id, verify_email_token=verify_email_token)
        await self.mailer.send_verify_email(user.email, verify_email_token)
        logger.info("Resent verification email for user %s", user_id)

    async def verify_email(self, user_id: str) -> Optional[AuthResult]:
        """
        Mark the user verified, clear the stored token and issue a pair.

        Returns ``None`` for a user who is already verified with a cleared
        token: nothing is written and no tokens are issued.
        """
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
        if user.verify == UserVerifyStatus.BANNED.value:
            raise ForbiddenError(messages.USER_BANNED, reason="user_banned")
        if user.verify == UserVerifyStatus.VERIFIED.value and not user.verify_email_token:
            logger.info("Email already verified for user %s", user_id)
            return None

        user = await self.users.update(
            user_id,
            verify_email_token="",
            verify=UserVerifyStatus.VERIFIED.value,
        )
        if user is None:
            raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
        logger.info("Verified email for user %s", user_id)

        tokens = await self._issue_for_user(user)
        return AuthResult(**tokens.model_dump(), user=UserView.from_user(user))

    async def logout(self, refresh_token: str) -> None:
        removed = await self.refresh_tokens.delete_by_token(refresh_token)
        logger.info("Logout (refresh record %s)", "revoked" if removed else "already gone")

    async def refresh_token(
        self,
        old_refresh_token: str,
        claims: TokenPayload,
        original_exp: Optional[int] = None,
    ) -> TokenPair:
        """
        Rotate ``old_refresh_token``.

        The old record is consumed first; if another caller already
        consumed it (or it was revoked) the rotation fails with
        ``NotFoundError`` and no tokens are minted.  The new refresh token
        keeps the old token's absolute expiry.
        """
        if not await self.refresh_tokens.delete_by_token(old_refresh_token):
            raise NotFoundError(messages.REFRESH_TOKEN_NOT_FOUND, reason="refresh_token_not_found")

        tokens = await self._issue_token_pair(
            user_id=claims.user_id,
            role=claims.role or UserRole.USER,
            verify=claims.verify or UserVerifyStatus.UNVERIFIED,
            status=claims.status or UserStatus.ACTIVE,
            exp=original_exp if original_exp is not None else claims.exp,
        )
        logger.info("Rotated refresh token for user %s", claims.user_id)
        return tokens

    async def forgot_password(self, user_id: str, email: str) -> None:
        forgot_password_token = self.codec.sign(TokenType.FORGOT_PASSWORD, user_id=str(user_id))
        user = await self.users.update(user_id, forgot_password_token=forgot_password_token)
        if user is None:
            raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
        await self.mailer.send_forgot_password_email(email, forgot_password_token)
        logger.info("Issued forgot-password token for user %s", user_id)

    async def reset_password(self, user_id: str, password: str) -> AuthResult:
        user = await self.users.update(
            user_id,
            password_hash=self.hasher.hash(password),
            forgot_password_token="",
        )
        if user is None:
            raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")

        tokens = await self._issue_for_user(user)
        logger.info("Password reset for user %s", user_id)
        return AuthResult(**tokens.model_dump(), user=UserView.from_user(user))
