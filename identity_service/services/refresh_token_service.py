"""Refresh token issuance, verification and revocation."""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Optional
import logging
import uuid

from sqlalchemy.orm import Session

from identity_service.config import settings
from identity_service.core.exceptions import RefreshTokenNotFoundError, TokenExpiredError
from identity_service.models.base import utcnow
from identity_service.models.security import RefreshToken
from identity_service.models.user import User

logger = logging.getLogger(__name__)


class RefreshTokenService:
    """Single-active-token store: issuing a token removes every older one for the user.

    Methods add and delete rows in the caller's session; committing is the
    caller's job, except for the cleanup of an expired token which must
    survive the failed request.
    """

    def __init__(
        self,
        id_generator: Callable[[], int],
        access_token_ttl_ms: int = settings.JWT_EXPIRATION_MS,
        grace_days: int = settings.REFRESH_TOKEN_GRACE_DAYS,
    ) -> None:
        self._next_id = id_generator
        self.lifetime = timedelta(milliseconds=access_token_ttl_ms) + timedelta(days=grace_days)

    def issue(self, db: Session, user_id: int) -> str:
        self.revoke_all(db, user_id)

        record = RefreshToken(
            id=self._next_id(),
            user_id=user_id,
            token=str(uuid.uuid4()),
            expiry_date=utcnow() + self.lifetime,
        )
        db.add(record)
        db.flush()
        return record.token

    def find(self, db: Session, token: str) -> Optional[RefreshToken]:
        return db.query(RefreshToken).filter(RefreshToken.token == token).first()

    def verify_and_resolve_owner(self, db: Session, token: str) -> User:
        record = self.find(db, token)
        if record is None:
            raise RefreshTokenNotFoundError()

        if record.is_expired():
            user_id = record.user_id
            db.delete(record)
            db.commit()
            logger.info("Deleted expired refresh token for user %s", user_id)
            raise TokenExpiredError("Refresh token was expired. Please make a new signin request")

        return record.user

    def revoke_all(self, db: Session, user_id: int) -> int:
        count = (
            db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
        db.flush()
        return count
