"""
Error taxonomy for the auth service.

Every error carries an HTTP status, a human-readable ``message`` and a
stable machine-readable ``reason``.  ``api.middleware`` renders them as
``{"message": ..., "reason": ...}``.
"""

from __future__ import annotations

from fastapi import status


class AuthError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_reason: str = "error"

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, reason={self.reason!r})"


class ValidationFailure(AuthError):
    status_code = 422
    default_reason = "validation_failed"


class NotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    default_reason = "not_found"


class UnauthorizedError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_reason = "unauthorized"


class ForbiddenError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_reason = "forbidden"


class ConflictError(AuthError):
    status_code = status.HTTP_409_CONFLICT
    default_reason = "conflict"
