"""User, role and role-assignment models"""

from typing import List

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from identity_service.core.database import Base
from identity_service.models.base import AuditMixin, utcnow


class Role(AuditMixin, Base):
    """Role catalog entry (USER, ORGANIZER, SUPER_ADMIN)"""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)

    def __repr__(self):
        return f"<Role(id={self.id}, name='{self.name}')>"


class User(AuditMixin, Base):
    """User model for authentication and authorization"""

    __tablename__ = "app_users"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    roles = relationship(
        "UserRole", back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    password_reset_tokens = relationship(
        "PasswordResetToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"

    @property
    def is_enabled(self) -> bool:
        return bool(self.is_active) and not self.is_deleted

    @property
    def authorities(self) -> List[str]:
        """Current role assignments as ROLE_* authorities"""
        return [f"ROLE_{assignment.role.name}" for assignment in self.roles]

    def add_role(self, role: Role, assignment_id: int) -> None:
        self.roles.append(UserRole(id=assignment_id, role=role))

    def activate(self) -> None:
        if not self.is_deleted:
            self.is_active = True

    def deactivate(self) -> None:
        if not self.is_deleted:
            self.is_active = False

    def soft_delete(self) -> None:
        if not self.is_deleted:
            self.is_deleted = True
            self.is_active = False
            self.deleted_at = utcnow()

    def restore(self) -> None:
        if self.is_deleted:
            self.is_deleted = False
            self.is_active = True
            self.deleted_at = None


class UserRole(AuditMixin, Base):
    """Assignment of a role to a user"""

    __tablename__ = "user_roles"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)

    user = relationship("User", back_populates="roles")
    role = relationship("Role", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
    )
