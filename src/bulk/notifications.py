"""Post-execution notifications for bulk operations.

Dispatch happens after the request's transaction is committed (FastAPI
background task). A failing dispatcher never affects the operation.
"""

import logging
from typing import Protocol

from src.models.bulk import ExecutionResult
from src.models.common import Actor

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    async def bulk_executed(self, result: ExecutionResult, actor: Actor) -> None: ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records the notification in the application log."""

    async def bulk_executed(self, result: ExecutionResult, actor: Actor) -> None:
        logger.info(
            "Notify %s: bulk preview %s %s, %d courses affected",
            actor.actor_id, result.preview_id, result.outcome.value, result.affected_count,
        )


async def dispatch_safely(dispatcher: NotificationDispatcher,
                          result: ExecutionResult, actor: Actor) -> None:
    try:
        await dispatcher.bulk_executed(result, actor)
    except Exception:
        logger.exception("Notification for bulk preview %s failed", result.preview_id)
