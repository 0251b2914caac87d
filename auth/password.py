"""
Password hashing and verification.

Digests are HMAC-SHA256 keyed with ``config.password_secret``: the same
password always maps to the same digest, and without the key a leaked
digest cannot be brute-forced offline.
"""

from __future__ import annotations

import hashlib
import hmac

from config.settings import Settings


class PasswordHasher:
    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("password secret must not be empty")
        self._key = secret.encode()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordHasher":
        return cls(settings.password_secret)

    def hash(self, password: str) -> str:
        """Return the hex digest for ``password``."""
        return hmac.new(self._key, password.encode(), hashlib.sha256).hexdigest()

    def verify(self, password: str, password_hash: str) -> bool:
        """Constant-time comparison against a stored digest."""
        try:
            return hmac.compare_digest(self.hash(password), password_hash)
        except (TypeError, AttributeError):
            return False
