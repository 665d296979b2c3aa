"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class ConfigurationError(ValueError):
    """Invalid secret, key or TTL configuration detected at startup"""


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password, whatever the underlying cause"""
    def __init__(self):
        super().__init__("Invalid email or password")


class TokenExpiredError(AuthenticationError):
    """Access, refresh or reset token has expired"""
    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class TokenInvalidError(AuthenticationError):
    """JWT token is malformed or its signature does not verify"""
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class RefreshTokenNotFoundError(AuthenticationError):
    """Refresh token is unknown"""
    def __init__(self):
        super().__init__("Invalid refresh token")


class InvalidResetTokenError(AuthenticationError):
    """Password reset token is unknown"""
    def __init__(self):
        super().__init__("Invalid password reset token")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


class InvalidPasswordError(AuthorizationError):
    """Current password did not match"""
    def __init__(self):
        super().__init__("Incorrect old password")



# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class UserNotFoundError(ResourceNotFoundError):
    def __init__(self):
        super().__init__("User")


class RoleNotFoundError(BaseAPIException):
    """Role missing from the role catalog"""
    def __init__(self, name: str):
        super().__init__(f"Role '{name}' not found", status_code=404, details={"role": name})


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


class UserAlreadyExistsError(ResourceAlreadyExistsError):
    def __init__(self):
        super().__init__("User")


class UserStateConflictError(BaseAPIException):
    """User is already deactivated or deleted"""
    def __init__(self, message: str):
        super().__init__(message, status_code=409)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class InvalidRoleError(BusinessLogicError):
    """Role is not open to self-signup"""
    def __init__(self, role: str):
        super().__init__(f"Invalid role: {role}", details={"role": role})
