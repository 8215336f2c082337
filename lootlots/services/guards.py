"""Access-control guards composed around the loot entry points.

Each guard is a plain check with its own failure kind:

- ``require_privileged(actor)``  -> Unauthorized
- ``require_not_paused()``       -> Paused
- ``non_reentrant(name)``        -> ReentrantCall
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

from ..config import ADMIN_SCOPE
from ..errors import Paused, ReentrantCall, Unauthorized
from ..security_rbac import role_gte
from . import system


@dataclass(frozen=True)
class Actor:
    account: str
    role: str = "user"
    scopes: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def privileged(self) -> bool:
        return role_gte(self.role, "admin") or ADMIN_SCOPE in self.scopes


def actor_from_user(user) -> Actor:
    return Actor(
        account=user.user_id,
        role=getattr(user, "role", None) or "user",
        scopes=tuple(getattr(user, "scopes", None) or ()),
    )


def actor_from_token(data: dict) -> Actor:
    """Actor for a verified admin token payload."""
    scopes = tuple(data.get("scopes") or ())
    return Actor(account=data.get("uid") or "ops", role="admin" if ADMIN_SCOPE in scopes else "user", scopes=scopes)


def require_privileged(actor: Optional[Actor]) -> Actor:
    if actor is None or not actor.privileged:
        raise Unauthorized("privileged caller required")
    return actor


def require_not_paused() -> None:
    if system.is_paused():
        raise Paused("opens are paused")


_local = threading.local()


@contextmanager
def non_reentrant(name: str) -> Iterator[None]:
    """Reject a nested call to ``name`` on the same thread."""
    active = getattr(_local, "active", None)
    if active is None:
        active = _local.active = set()
    if name in active:
        raise ReentrantCall(f"{name} is already running on this thread")
    active.add(name)
    try:
        yield
    finally:
        active.discard(name)
