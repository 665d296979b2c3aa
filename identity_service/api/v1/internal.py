"""Internal service-to-service routes

Authenticated by InternalServiceMiddleware, not by user tokens.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from identity_service.core.database import get_db
from identity_service.schemas.user import UserIdBatch, UserSummary
from identity_service.services.user_service import UserService
from identity_service.api.deps import get_user_service

router = APIRouter()


@router.get("/users/{user_id}", response_model=UserSummary)
def get_user_summary(
    user_id: int,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    return service.get_user_summary(db, user_id)


@router.post("/users/batch", response_model=List[UserSummary])
def get_user_summaries(
    body: UserIdBatch,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """Look up many users at once; unknown ids are left out"""
    return service.find_user_summaries(db, body.ids)
