"""
JWT creation and verification.

Tokens are compact HS256 JWS strings produced with PyJWT.  Each
``TokenType`` has its own secret and lifetime (``config.token_configs()``),
so a leaked secret for one class cannot mint tokens of another.  On top
of that the ``token_type`` claim is checked on every decode.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Mapping, Optional, Tuple

import jwt
from pydantic import ValidationError

from config.settings import Settings, TokenConfig
from utils.schemas import TokenPayload, TokenType, UserRole, UserStatus, UserVerifyStatus

logger = logging.getLogger(__name__)


# ── Errors ─────────────────────────────────────────────────────────────


class TokenError(Exception):
    """Base class for every token verification failure."""

    reason = "invalid_token"


class TokenExpiredError(TokenError):
    reason = "expired"


class InvalidSignatureError(TokenError):
    reason = "invalid_signature"


class MalformedTokenError(TokenError):
    reason = "malformed"


class WrongTokenTypeError(TokenError):
    reason = "wrong_token_type"


# ── Low-level sign / verify ────────────────────────────────────────────


def stamp_claims(payload: Dict[str, Any], *, expires_in: Optional[int] = None) -> Dict[str, Any]:
    """
    Return a copy of ``payload`` with ``iat``, ``jti`` and ``exp`` filled in.

    An ``exp`` already in the payload wins over ``expires_in``; otherwise
    ``exp = iat + expires_in``.
    """
    claims = dict(payload)
    claims.setdefault("iat", int(time.time()))
    claims.setdefault("jti", uuid.uuid4().hex)
    if "exp" not in claims and expires_in is not None:
        claims["exp"] = claims["iat"] + int(expires_in)
    return claims


def sign_token(
    payload: Dict[str, Any],
    secret: str,
    *,
    expires_in: Optional[int] = None,
    algorithm: str = "HS256",
) -> str:
    """Sign ``payload`` with ``secret`` after ``stamp_claims``."""
    return jwt.encode(stamp_claims(payload, expires_in=expires_in), secret, algorithm=algorithm)


def verify_token(token: str, secret: str, *, algorithm: str = "HS256") -> Dict[str, Any]:
    """
    Verify signature and expiry and return the raw claims.

    Raises a ``TokenError`` subclass; never returns a payload for a bad token.
    """
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError(str(exc)) from exc
    except jwt.InvalidSignatureError as exc:
        raise InvalidSignatureError(str(exc)) from exc
    except jwt.InvalidTokenError as exc:
        raise MalformedTokenError(str(exc)) from exc


# ── Typed codec ────────────────────────────────────────────────────────


class TokenCodec:
    """Signs and verifies tokens of each ``TokenType`` with its own secret."""

    def __init__(self, token_configs: Mapping[str, TokenConfig], algorithm: str = "HS256") -> None:
        missing = [t.value for t in TokenType if t.value not in token_configs]
        if missing:
            raise ValueError(f"Missing token configuration for: {', '.join(missing)}")
        self._configs = dict(token_configs)
        self._algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(settings.token_configs(), algorithm=settings.jwt_algorithm)

    def sign(
        self,
        token_type: TokenType,
        *,
        user_id: str,
        role: Optional[UserRole] = None,
        verify: Optional[UserVerifyStatus] = None,
        status: Optional[UserStatus] = None,
        exp: Optional[int] = None,
    ) -> str:
        """
        Sign a token of ``token_type`` for ``user_id``.

        Pass ``exp`` to pin an absolute expiry (refresh rotation) instead
        of the configured lifetime.
        """
        token, _ = self.sign_with_claims(
            token_type, user_id=user_id, role=role, verify=verify, status=status, exp=exp
        )
        return token

    def sign_with_claims(
        self,
        token_type: TokenType,
        *,
        user_id: str,
        role: Optional[UserRole] = None,
        verify: Optional[UserVerifyStatus] = None,
        status: Optional[UserStatus] = None,
        exp: Optional[int] = None,
    ) -> Tuple[str, TokenPayload]:
        """Like ``sign`` but also return the claims that were signed."""
        cfg = self._configs[token_type.value]
        payload: Dict[str, Any] = {"user_id": str(user_id), "token_type": token_type.value}
        if role is not None:
            payload["role"] = UserRole(role).value
        if verify is not None:
            payload["verify"] = UserVerifyStatus(verify).value
        if status is not None:
            payload["status"] = UserStatus(status).value
        if exp is not None:
            payload["exp"] = int(exp)
        claims = stamp_claims(payload, expires_in=cfg.expires_in)
        token = jwt.encode(claims, cfg.secret, algorithm=self._algorithm)
        return token, TokenPayload(**claims)

    def verify(self, token: str, token_type: TokenType) -> TokenPayload:
        """Decode ``token`` as a ``token_type`` token or raise ``TokenError``."""
        cfg = self._configs[token_type.value]
        claims = verify_token(token, cfg.secret, algorithm=self._algorithm)
        if claims.get("token_type") != token_type.value:
            raise WrongTokenTypeError(
                f"expected {token_type.value} token, got {claims.get('token_type')!r}"
            )
        try:
            return TokenPayload(**claims)
        except ValidationError as exc:
            raise MalformedTokenError(f"bad claims: {exc.error_count()} error(s)") from exc
