"""Security-related persistence models."""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from identity_service.core.database import Base
from identity_service.models.base import AuditMixin, ensure_utc, utcnow


class RefreshToken(AuditMixin, Base):
    """Opaque refresh token; at most one per user."""

    __tablename__ = "refresh_tokens"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(255), unique=True, nullable=False, index=True)
    expiry_date = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def is_expired(self) -> bool:
        return ensure_utc(self.expiry_date) < utcnow()


class PasswordResetToken(AuditMixin, Base):
    """Single-use, short-lived password reset token."""

    __tablename__ = "password_reset_tokens"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    token = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False, index=True)
    expiry_date = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="password_reset_tokens")

    def is_expired(self) -> bool:
        return utcnow() > ensure_utc(self.expiry_date)
