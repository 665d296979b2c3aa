"""Request-scoped actor context."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

SYSTEM_ACTOR_ID = 0


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as carried by an access token."""

    user_id: int
    email: str
    authorities: Tuple[str, ...] = field(default_factory=tuple)

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities

    def has_role(self, role: str) -> bool:
        return self.has_authority(f"ROLE_{role}")


SYSTEM_PRINCIPAL = Principal(user_id=SYSTEM_ACTOR_ID, email="SYSTEM")

_current_actor: ContextVar[Optional[Principal]] = ContextVar("current_actor", default=None)


def current_actor() -> Optional[Principal]:
    return _current_actor.get()


def current_actor_id() -> Optional[int]:
    """Id stamped into created_by/updated_by columns."""
    actor = _current_actor.get()
    return actor.user_id if actor else None


@contextmanager
def acting_as(principal: Optional[Principal]) -> Iterator[Optional[Principal]]:
    token = _current_actor.set(principal)
    try:
        yield principal
    finally:
        _current_actor.reset(token)


@contextmanager
def run_as_system() -> Iterator[Principal]:
    """Run startup and maintenance work as the SYSTEM actor."""
    with acting_as(SYSTEM_PRINCIPAL) as principal:
        yield principal
