"""Ownership checks shared by execution, cancellation and templates."""

from uuid import UUID

from src.bulk.errors import AuthorizationError
from src.models.common import Actor


def ensure_owner_or_admin(owner_id: UUID, actor: Actor, what: str) -> None:
    """Only the creator of a preview/template or an admin may act on it."""
    if actor.is_admin or actor.actor_id == owner_id:
        return
    msg = f"Only the creator or an admin may {what}."
    raise AuthorizationError(msg)
