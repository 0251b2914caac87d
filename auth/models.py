"""This module re-exports the ORM models and enums used by authentication code.
"""

from database.models import RefreshToken, User  # noqa: F401
from utils.schemas import TokenType, UserRole, UserStatus, UserVerifyStatus  # noqa: F401

__all__ = ["RefreshToken", "User", "TokenType", "UserRole", "UserStatus", "UserVerifyStatus"]
