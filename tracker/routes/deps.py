from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Header

from tracker.core.errors import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Actor:
    """The opaque caller identity supplied by the authentication layer."""

    id: str
    roles: frozenset[str] = frozenset()


async def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_roles: str | None = Header(default=None),
) -> Actor:
    if not x_actor_id or not x_actor_id.strip():
        raise AuthenticationError("Missing authorization token.")
    roles = frozenset(role.strip() for role in (x_actor_roles or "").split(",") if role.strip())
    actor = Actor(id=x_actor_id.strip(), roles=roles)
    logger.debug("Request by %s (roles=%s)", actor.id, ",".join(sorted(roles)) or "-")
    return actor


def require(payload: dict[str, Any], *keys: str) -> list[str]:
    """Return the values for ``keys`` or fail listing the missing ones."""

    missing = [key for key in keys if payload.get(key) in (None, "")]
    if missing:
        raise ValidationError("Missing required fields.", fields=missing)
    return [str(payload[key]) for key in keys]


def first_present(payload: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return str(value)
    return None
