"""CancellationRegistry — moves PENDING previews to CANCELLED.

Cancelling is idempotent: a preview already in a terminal state is
reported as-is with cancelled=False. A PENDING preview whose expiry has
passed is moved to EXPIRED instead, so it can never be executed or
reported as cancelled afterwards.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk.access import ensure_owner_or_admin
from src.bulk.errors import NotFoundError
from src.models.bulk import CancelResult
from src.models.common import Actor, PreviewState, ensure_utc, utc_now
from src.repositories.activities import ActivityRepository
from src.repositories.bulk import PreviewRepository

logger = logging.getLogger(__name__)


class CancellationRegistry:
    def __init__(self, session: AsyncSession) -> None:
        self._previews = PreviewRepository(session)
        self._activities = ActivityRepository(session)

    async def cancel(self, preview_id: str, actor: Actor) -> CancelResult:
        """Cancel a pending preview.

        Raises:
            NotFoundError: unknown token.
            AuthorizationError: actor is neither the preview's creator nor an admin.
        """
        record = await self._previews.get(preview_id)
        if record is None:
            msg = f"Preview {preview_id} not found."
            raise NotFoundError(msg)
        ensure_owner_or_admin(record.created_by, actor, "cancel this preview")

        state = PreviewState(record.state)
        if state != PreviewState.PENDING:
            return CancelResult(preview_id=preview_id, state=state, cancelled=False)

        if ensure_utc(record.expires_at) <= utc_now():
            target = PreviewState.EXPIRED
        else:
            target = PreviewState.CANCELLED

        moved = await self._previews.transition(
            preview_id,
            from_state=PreviewState.PENDING,
            to_state=target,
            actor=actor.actor_id,
        )
        if not moved:
            # Lost a race with execute or another cancel; report the winner.
            current = await self._previews.get(preview_id)
            return CancelResult(
                preview_id=preview_id,
                state=PreviewState(current.state),
                cancelled=False,
            )

        if target == PreviewState.CANCELLED:
            await self._activities.create(
                entity_type="bulk_operation",
                entity_id=preview_id,
                action="bulk_operation_cancelled",
                user_id=actor.actor_id,
                description=f"Cancelled bulk preview of {record.matched_count} courses",
                metadata={"criteria": record.criteria, "action": record.action},
            )
            logger.info("Bulk preview %s cancelled by %s", preview_id, actor.actor_id)
        else:
            logger.info("Bulk preview %s expired before cancellation", preview_id)

        return CancelResult(
            preview_id=preview_id,
            state=target,
            cancelled=target == PreviewState.CANCELLED,
        )
