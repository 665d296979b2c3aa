"""Password reset token lifecycle"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Optional
import logging
import uuid

from sqlalchemy.orm import Session

from identity_service.config import settings
from identity_service.core.database import transactional
from identity_service.core.exceptions import InvalidResetTokenError, TokenExpiredError
from identity_service.core.security import get_password_hash
from identity_service.models.base import utcnow
from identity_service.models.security import PasswordResetToken
from identity_service.models.user import User
from identity_service.services.notification import NotificationPublisher, redact_email

logger = logging.getLogger(__name__)


class PasswordResetService:
    """Issue and consume single-use reset tokens, one live token per user."""

    def __init__(
        self,
        id_generator: Callable[[], int],
        publisher: NotificationPublisher,
        ttl_seconds: int = settings.PASSWORD_RESET_TOKEN_TTL_SECONDS,
    ) -> None:
        self._next_id = id_generator
        self.publisher = publisher
        self.ttl = timedelta(seconds=ttl_seconds)

    @staticmethod
    def find_active_user(db: Session, email: str) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.email == email, User.is_active == True, User.is_deleted == False)  # noqa: E712
            .first()
        )

    def initiate(self, db: Session, email: str) -> None:
        """
        Start a password reset

        Returns without error whether or not the email belongs to an active
        account, so callers cannot tell which addresses are registered.

        Args:
            db: Database session
            email: Address the reset was requested for
        """
        user = self.find_active_user(db, email)
        owner_id = user.id if user is not None else None
        token_value = str(uuid.uuid4())

        # Same statements and commit on both branches.
        with transactional(db):
            db.query(PasswordResetToken).filter(
                PasswordResetToken.user_id == owner_id
            ).delete(synchronize_session="fetch")

            if user is not None:
                db.add(PasswordResetToken(
                    id=self._next_id(),
                    token=token_value,
                    user_id=user.id,
                    expiry_date=utcnow() + self.ttl,
                ))

        if user is None:
            logger.info("Password reset requested for %s", redact_email(email))
            return

        self.publisher.send_forgot_password_email(user.email, token_value)
        logger.info("Password reset token generated for user %s", user.id)

    def complete(self, db: Session, token: str, new_password: str) -> None:
        """
        Finish a password reset and consume the token

        Raises:
            InvalidResetTokenError: Token is unknown
            TokenExpiredError: Token expired; it is deleted as a side effect
        """
        reset_token = (
            db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
        )
        if reset_token is None:
            raise InvalidResetTokenError()

        if reset_token.is_expired():
            db.delete(reset_token)
            db.commit()
            raise TokenExpiredError("Password reset token has expired")

        with transactional(db):
            user = reset_token.user
            user.password_hash = get_password_hash(new_password)
            db.delete(reset_token)

        logger.info("Password reset completed for user %s", user.id)
