"""Caller identity for API endpoints.

Authentication happens at the gateway, which forwards the verified user
as X-Actor-Id / X-Actor-Role headers. Endpoints depend on
require_roles(...) to get an Actor restricted to the roles they allow.
"""

from collections.abc import Awaitable, Callable
from uuid import UUID

from fastapi import Depends, Header, HTTPException

from src.models.common import Actor, ActorRole

BULK_ROLES = (ActorRole.ADMIN, ActorRole.MANAGER)


async def get_current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="Missing actor identity headers.")
    try:
        actor_id = UUID(x_actor_id)
        role = ActorRole(x_actor_role.lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed actor identity headers.") from None
    return Actor(actor_id=actor_id, role=role)


def require_roles(*roles: ActorRole) -> Callable[..., Awaitable[Actor]]:
    """Dependency factory: the current actor, or 403 if their role is not in `roles`."""
    allowed = frozenset(roles)

    async def _dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{actor.role.value}' may not perform this operation.",
            )
        return actor

    return _dependency
