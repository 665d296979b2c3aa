"""Shared model columns and time helpers."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Column, DateTime
from sqlalchemy.sql import func

from identity_service.core.context import current_actor_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class AuditMixin:
    """created/updated timestamps and the acting user id."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by = Column(BigInteger, default=current_actor_id, nullable=True)
    updated_by = Column(BigInteger, default=current_actor_id, onupdate=current_actor_id, nullable=True)
