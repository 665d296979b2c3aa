"""User schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from identity_service.schemas.auth import check_password_bytes


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    email: str
    full_name: str
    roles: List[str]
    is_active: bool
    created_at: Optional[datetime]

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            roles=user.authorities,
            is_active=user.is_active,
            created_at=user.created_at,
        )


class UserSummary(BaseModel):
    """Minimal view handed to other services"""
    id: int
    full_name: str
    email: str

    class Config:
        from_attributes = True


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=8, max_length=72)

    @field_validator("old_password", "new_password")
    @classmethod
    def password_fits_bcrypt(cls, v):
        return check_password_bytes(v)


class UserStatusUpdate(BaseModel):
    active: bool


class UserIdBatch(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=500)
