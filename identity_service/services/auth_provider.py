"""Credential verification strategies used by login."""

from __future__ import annotations

from functools import lru_cache
from typing import Protocol
import logging
import secrets

from sqlalchemy.orm import Session

from identity_service.core.context import Principal
from identity_service.core.security import get_password_hash, verify_password
from identity_service.models.user import User

logger = logging.getLogger(__name__)


class AuthenticationFailure(Exception):
    """Credential check failed. The reason is for logs only."""


class AuthenticationProvider(Protocol):
    def authenticate(self, db: Session, identifier: str, secret: str) -> Principal:
        ...


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, email=user.email, authorities=tuple(user.authorities))


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return get_password_hash(secrets.token_urlsafe(16))


class PasswordAuthenticationProvider:
    """Email + bcrypt password check against the user table."""

    def authenticate(self, db: Session, identifier: str, secret: str) -> Principal:
        user = db.query(User).filter(User.email == identifier).first()

        if user is None:
            # Burn a hash comparison so unknown emails cost the same as wrong passwords.
            self._check(secret, _dummy_hash())
            raise AuthenticationFailure("unknown email")

        if not self._check(secret, user.password_hash):
            raise AuthenticationFailure("bad password")

        if user.is_deleted:
            raise AuthenticationFailure("account deleted")
        if not user.is_active:
            raise AuthenticationFailure("account disabled")

        return principal_for(user)

    @staticmethod
    def _check(secret: str, hashed: str) -> bool:
        try:
            return verify_password(secret, hashed)
        except ValueError:
            # Over-long or otherwise unusable input for bcrypt.
            return False
