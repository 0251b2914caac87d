"""
User auth API routes.

Route prefix: /api/v1/users
Every success response is ``{"message": ..., "data": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from auth import messages
from auth.dependencies import (
    AuthContext,
    access_token_validator,
    forgot_password_token_validator,
    forgot_password_validator,
    get_session_service,
    get_user_store,
    is_admin_validator,
    login_validator,
    refresh_token_validator,
    verified_user_validator,
    verify_email_token_validator,
)
from auth.errors import ForbiddenError, NotFoundError, ValidationFailure
from auth.service import SessionService
from auth.store import UserStore
from utils.schemas import UserVerifyStatus, UserView

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


# ── Request schemas ────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=128)
    email: str = Field(..., min_length=5, max_length=255)
    password: str = Field(..., min_length=6, max_length=50)
    confirm_password: str = Field(..., min_length=6, max_length=50)


def _check_confirm_password(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise ValidationFailure(messages.CONFIRM_PASSWORD_MISMATCH, reason="confirm_password_mismatch")


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/register")
async def register(
    req: RegisterRequest,
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    _check_confirm_password(req.password, req.confirm_password)
    result = await service.register(req.email, req.password, name=req.name)
    return {"message": messages.REGISTER_SUCCESS, "data": result.model_dump(mode="json")}


@router.post("/login")
async def login(
    ctx: AuthContext = Depends(login_validator),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    tokens = await service.login(ctx.user)
    return {
        "message": messages.LOGIN_SUCCESS,
        "data": {
            **tokens.model_dump(mode="json"),
            "user": UserView.from_user(ctx.user).model_dump(mode="json"),
        },
    }


@router.post("/logout", dependencies=[Depends(access_token_validator)])
async def logout(
    ctx: AuthContext = Depends(refresh_token_validator),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    await service.logout(ctx.raw_refresh_token)
    return {"message": messages.LOGOUT_SUCCESS}


@router.post("/refresh-token")
async def refresh_token(
    ctx: AuthContext = Depends(refresh_token_validator),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    tokens = await service.refresh_token(ctx.raw_refresh_token, ctx.refresh_token)
    return {"message": messages.REFRESH_TOKEN_SUCCESS, "data": tokens.model_dump(mode="json")}


@router.post("/resend-verify-email")
async def resend_verify_email(
    ctx: AuthContext = Depends(access_token_validator),
    users: UserStore = Depends(get_user_store),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    user_id = ctx.authorization.user_id
    user = await users.get(user_id)
    if user is None:
        raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
    if user.verify == UserVerifyStatus.BANNED.value:
        raise ForbiddenError(messages.USER_BANNED, reason="user_banned")
    if user.verify == UserVerifyStatus.VERIFIED.value:
        return {"message": messages.EMAIL_ALREADY_VERIFIED}

    await service.resend_email_verify(user_id)
    return {"message": messages.RESEND_EMAIL_VERIFY_SUCCESS}


@router.post("/verify-email")
async def verify_email(
    ctx: AuthContext = Depends(verify_email_token_validator),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    result = await service.verify_email(ctx.verify_email_token.user_id)
    if result is None:
        return {"message": messages.EMAIL_ALREADY_VERIFIED}
    return {"message": messages.EMAIL_VERIFY_SUCCESS, "data": result.model_dump(mode="json")}


@router.post("/forgot-password")
async def forgot_password(
    ctx: AuthContext = Depends(forgot_password_validator),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    await service.forgot_password(str(ctx.user.user_id), ctx.user.email)
    return {"message": messages.CHECK_EMAIL_TO_RESET_PASSWORD}


@router.post("/verify-forgot-password")
async def verify_forgot_password(
    ctx: AuthContext = Depends(forgot_password_token_validator),
) -> Dict[str, Any]:
    return {"message": messages.VERIFY_FORGOT_PASSWORD_SUCCESS}


@router.post("/reset-password")
async def reset_password(
    password: str = Body(..., min_length=6, max_length=50),
    confirm_password: str = Body(..., min_length=6, max_length=50),
    ctx: AuthContext = Depends(forgot_password_token_validator),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    _check_confirm_password(password, confirm_password)
    result = await service.reset_password(ctx.forgot_password_token.user_id, password)
    return {"message": messages.RESET_PASSWORD_SUCCESS, "data": result.model_dump(mode="json")}


@router.get("/me")
async def get_me(
    ctx: AuthContext = Depends(verified_user_validator),
    users: UserStore = Depends(get_user_store),
) -> Dict[str, Any]:
    user = await users.get(ctx.authorization.user_id)
    if user is None:
        raise NotFoundError(messages.USER_NOT_FOUND, reason="user_not_found")
    return {"message": messages.GET_ME_SUCCESS, "data": UserView.from_user(user).model_dump(mode="json")}


@router.get("/admin/ping")
async def admin_ping(ctx: AuthContext = Depends(is_admin_validator)) -> Dict[str, Any]:
    return {"message": "pong", "data": {"user_id": ctx.authorization.user_id}}
