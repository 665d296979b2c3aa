"""User service - profile, status and account lifecycle operations"""

from typing import Callable, Iterable, List
import logging

from sqlalchemy.orm import Session

from identity_service.core.context import run_as_system
from identity_service.core.database import transactional
from identity_service.core.exceptions import (
    InvalidPasswordError,
    RoleNotFoundError,
    UserNotFoundError,
    UserStateConflictError,
)
from identity_service.core.security import get_password_hash, verify_password
from identity_service.core.tsid import id_generator
from identity_service.models.user import Role, User
from identity_service.schemas.user import UserResponse, UserSummary
from identity_service.services.auth_service import refresh_token_service
from identity_service.services.refresh_token_service import RefreshTokenService

logger = logging.getLogger(__name__)

ROLE_CATALOG = ("USER", "ORGANIZER", "SUPER_ADMIN")
SUPER_ADMIN_ROLE = "SUPER_ADMIN"


class UserService:
    """Service for user management"""

    def __init__(self, refresh_tokens: RefreshTokenService, id_generator: Callable[[], int]):
        self.refresh_tokens = refresh_tokens
        self._next_id = id_generator

    @staticmethod
    def _get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFoundError()
        return user

    def get_profile(self, db: Session, user_id: int) -> UserResponse:
        """Get the caller's own profile"""
        return UserResponse.from_user(self._get_user(db, user_id))

    def get_user_summary(self, db: Session, user_id: int) -> UserSummary:
        """Get the minimal view of one user for another service"""
        return UserSummary.model_validate(self._get_user(db, user_id))

    @staticmethod
    def find_user_summaries(db: Session, ids: Iterable[int]) -> List[UserSummary]:
        """
        Look up many users at once

        Unknown ids are skipped; results are ordered by id.
        """
        unique_ids = sorted(set(ids))
        if not unique_ids:
            return []
        users = db.query(User).filter(User.id.in_(unique_ids)).order_by(User.id).all()
        return [UserSummary.model_validate(user) for user in users]

    def change_password(self, db: Session, user_id: int, old_password: str, new_password: str) -> None:
        """
        Change password after re-checking the current one

        Raises:
            UserNotFoundError: Unknown user
            InvalidPasswordError: Old password did not match
        """
        user = self._get_user(db, user_id)

        try:
            matches = verify_password(old_password, user.password_hash)
        except ValueError:
            matches = False
        if not matches:
            raise InvalidPasswordError()

        with transactional(db):
            user.password_hash = get_password_hash(new_password)

        logger.info(f"Password changed for user {user_id}")

    def change_user_status(self, db: Session, user_id: int, active: bool) -> UserResponse:
        """Activate or deactivate a user; deactivation signs them out everywhere"""
        user = self._get_user(db, user_id)
        if user.is_deleted:
            raise UserStateConflictError("User is deleted")

        with transactional(db):
            if active:
                user.activate()
            else:
                user.deactivate()
                self.refresh_tokens.revoke_all(db, user.id)

        logger.info(f"User {user_id} {'activated' if active else 'deactivated'}")
        return UserResponse.from_user(user)

    def deactivate_account(self, db: Session, user_id: int) -> None:
        """Self-service deactivation"""
        user = self._get_user(db, user_id)
        if user.is_deleted or not user.is_active:
            raise UserStateConflictError("User is already deactivated or deleted")

        with transactional(db):
            user.deactivate()
            self.refresh_tokens.revoke_all(db, user.id)

        logger.info(f"User {user_id} deactivated their account")

    def delete_account(self, db: Session, user_id: int) -> None:
        """Self-service soft delete; the row is kept for audit"""
        user = self._get_user(db, user_id)
        if user.is_deleted:
            raise UserStateConflictError("User is already deleted")

        with transactional(db):
            user.soft_delete()
            self.refresh_tokens.revoke_all(db, user.id)

        logger.info(f"User {user_id} deleted their account")

    def hard_delete_user(self, db: Session, user_id: int) -> None:
        """Remove a user and everything hanging off it"""
        user = self._get_user(db, user_id)

        with transactional(db):
            self.refresh_tokens.revoke_all(db, user.id)
            db.delete(user)

        logger.info(f"Deleted user {user_id}")

    @staticmethod
    def seed_roles(db: Session) -> int:
        """Insert missing catalog roles; returns how many were added"""
        existing = {name for (name,) in db.query(Role.name).all()}
        missing = [name for name in ROLE_CATALOG if name not in existing]
        if not missing:
            return 0

        with run_as_system(), transactional(db):
            for name in missing:
                db.add(Role(name=name))

        logger.info(f"Seeded roles: {', '.join(missing)}")
        return len(missing)

    def bootstrap_admin(self, db: Session, email: str, password: str) -> bool:
        """
        Create the super admin account if it does not exist yet

        Returns:
            True if the account was created
        """
        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            return False

        role = db.query(Role).filter(Role.name == SUPER_ADMIN_ROLE).first()
        if role is None:
            raise RoleNotFoundError(SUPER_ADMIN_ROLE)

        with run_as_system(), transactional(db):
            admin = User(
                id=self._next_id(),
                email=email,
                password_hash=get_password_hash(password),
                full_name="Administrator",
            )
            admin.add_role(role, self._next_id())
            db.add(admin)

        logger.info(f"Created super admin account {admin.id}")
        return True


# Singleton instance
user_service = UserService(refresh_token_service, id_generator)
