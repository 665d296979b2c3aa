"""Self-service user routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from identity_service.core.context import Principal
from identity_service.core.database import get_db
from identity_service.schemas.response import APIResponse
from identity_service.schemas.user import ChangePasswordRequest, UserResponse
from identity_service.services.user_service import UserService
from identity_service.api.deps import get_current_principal, get_user_service

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_my_profile(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """
    Get current user profile

    Args:
        principal: Caller resolved from the access token

    Returns:
        User profile
    """
    return service.get_profile(db, principal.user_id)


@router.post("/me/password", response_model=APIResponse, status_code=status.HTTP_200_OK)
def change_my_password(
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """Change password after confirming the current one"""
    service.change_password(db, principal.user_id, body.old_password, body.new_password)
    return APIResponse(message="Password changed successfully")


@router.post("/me/deactivate", response_model=APIResponse, status_code=status.HTTP_200_OK)
def deactivate_my_account(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """Deactivate own account and sign out of every session"""
    service.deactivate_account(db, principal.user_id)
    return APIResponse(message="Account deactivated")


@router.delete("/me", response_model=APIResponse, status_code=status.HTTP_200_OK)
def delete_my_account(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """Soft-delete own account and sign out of every session"""
    service.delete_account(db, principal.user_id)
    return APIResponse(message="Account deleted")
