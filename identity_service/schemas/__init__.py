"""Pydantic schemas for API validation"""

from identity_service.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    TokenRefreshRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    AuthResponse,
)
from identity_service.schemas.user import (
    UserResponse,
    UserSummary,
    ChangePasswordRequest,
    UserStatusUpdate,
    UserIdBatch,
)
from identity_service.schemas.response import APIResponse, ErrorResponse

__all__ = [
    "RegisterRequest", "LoginRequest", "TokenRefreshRequest",
    "ForgotPasswordRequest", "ResetPasswordRequest", "AuthResponse",
    "UserResponse", "UserSummary", "ChangePasswordRequest", "UserStatusUpdate", "UserIdBatch",
    "APIResponse", "ErrorResponse",
]
