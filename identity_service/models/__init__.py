"""Database models"""

from identity_service.models.user import User, Role, UserRole
from identity_service.models.security import RefreshToken, PasswordResetToken

__all__ = ["User", "Role", "UserRole", "RefreshToken", "PasswordResetToken"]
