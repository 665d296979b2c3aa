"""Authentication routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from identity_service.core.database import get_db
from identity_service.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRefreshRequest,
)
from identity_service.schemas.response import APIResponse
from identity_service.services.auth_service import AuthService
from identity_service.api.deps import get_auth_service, get_bearer_token

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Register endpoint - create account and return a token pair

    Args:
        body: Email, password, full name and requested role
        db: Database session

    Returns:
        Access token and refresh token
    """
    return service.register(db, body.email, body.password, body.full_name, body.role)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Login endpoint - authenticate user and return JWT token

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access token and refresh token
    """
    return service.login(db, credentials.email, credentials.password)


@router.post("/refresh", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def refresh(
    body: TokenRefreshRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new access token"""
    return service.refresh(db, body.refresh_token)


@router.post("/logout", response_model=APIResponse, status_code=status.HTTP_200_OK)
def logout(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """
    Logout endpoint - revoke the access token and all refresh tokens

    Expired access tokens are accepted so a client can always sign out.
    """
    service.logout(db, token)
    return APIResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=APIResponse, status_code=status.HTTP_200_OK)
def forgot_password(
    body: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Start a password reset; the response is identical for unknown emails"""
    service.forgot_password(db, body.email)
    return APIResponse(message="If the account exists, a password reset email has been sent")


@router.post("/reset-password", response_model=APIResponse, status_code=status.HTTP_200_OK)
def reset_password(
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
):
    """Set a new password using a reset token"""
    service.reset_password(db, body.token, body.new_password)
    return APIResponse(message="Password has been reset successfully")
