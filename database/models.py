"""
SQLAlchemy ORM models for users and issued refresh tokens.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from utils.schemas import UserRole, UserStatus, UserVerifyStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(128))
    password_hash = Column(String(255), nullable=False, default="")
    role = Column(String(16), nullable=False, default=UserRole.USER.value)
    verify = Column(String(16), nullable=False, default=UserVerifyStatus.UNVERIFIED.value)
    status = Column(String(16), nullable=False, default=UserStatus.ACTIVE.value)

    # Single-use tokens; "" once consumed
    verify_email_token = Column(String(1024), nullable=False, default="")
    forgot_password_token = Column(String(1024), nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    refresh_token_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    token = Column(String(1024), nullable=False, unique=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    iat = Column(DateTime(timezone=True), nullable=False)
    exp = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    user = relationship("User", back_populates="refresh_tokens")


Index("ix_refresh_tokens_token", RefreshToken.token)
Index("ix_refresh_tokens_exp", RefreshToken.exp)
