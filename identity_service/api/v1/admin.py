"""Admin routes - user status and deletion (SUPER_ADMIN only)"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from identity_service.core.context import Principal
from identity_service.core.database import get_db
from identity_service.schemas.response import APIResponse
from identity_service.schemas.user import UserResponse, UserStatusUpdate
from identity_service.services.user_service import UserService
from identity_service.api.deps import get_super_admin, get_user_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    body: UserStatusUpdate,
    admin: Principal = Depends(get_super_admin),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """
    Activate or deactivate a user

    Deactivation revokes the user's refresh tokens.
    """
    logger.info(f"Admin {admin.user_id} setting active={body.active} for user {user_id}")
    return service.change_user_status(db, user_id, body.active)


@router.delete("/users/{user_id}", response_model=APIResponse, status_code=status.HTTP_200_OK)
def delete_user(
    user_id: int,
    admin: Principal = Depends(get_super_admin),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """Permanently delete a user and their tokens"""
    logger.info(f"Admin {admin.user_id} deleting user {user_id}")
    service.hard_delete_user(db, user_id)
    return APIResponse(message="User deleted")
