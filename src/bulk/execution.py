"""ExecutionEngine — applies a previewed bulk operation.

Re-validates the preview token, re-resolves the criteria, refuses stale
previews, locks the still-matching snapshot rows (SELECT ... FOR UPDATE with
the criteria re-applied, so a row changed in between counts as drift), then
applies the action to them inside one savepoint: claim the preview (PENDING → EXECUTED compare-and-set),
update courses in sub-batches, append activity entries. Either all of it
commits with the request or none of it does. Bulk execution is never
partial.

Outcomes:
- SUCCESS: history SUCCESS, preview EXECUTED.
- FAILED (row rule violation or database error): history FAILED with the
  cause, no course touched, preview left PENDING for retry or re-preview.
- Stale / terminal / expired / unknown previews raise before anything is written.
"""

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk import impact
from src.bulk.access import ensure_owner_or_admin
from src.bulk.errors import ConflictError, GoneError, NotFoundError, StalePreviewError
from src.bulk.resolver import MatchResolver
from src.config.settings import Settings
from src.db.tables import BulkPreviewRow, CourseRow
from src.models.bulk import BulkAction, Criteria, ExecutionResult, RowFailure
from src.models.common import (
    ActionField,
    Actor,
    BulkOutcome,
    PreviewState,
    ensure_utc,
    utc_now,
)
from src.repositories.activities import ActivityRepository
from src.repositories.bulk import HistoryRepository, PreviewRepository
from src.repositories.courses import CourseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Drift:
    """Difference between the preview snapshot and the current match set."""

    dropped: list[UUID]
    added: list[UUID]
    targets: list[UUID]


def compute_drift(snapshot: Sequence[UUID], current: Sequence[UUID]) -> Drift:
    """Targets keep snapshot order and never include rows outside the snapshot."""
    current_set = set(current)
    snapshot_set = set(snapshot)
    return Drift(
        dropped=[cid for cid in snapshot if cid not in current_set],
        added=[cid for cid in current if cid not in snapshot_set],
        targets=[cid for cid in snapshot if cid in current_set],
    )


def chunked(items: Sequence, size: int) -> Iterator[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _assign(row: CourseRow, field: ActionField, value) -> None:
    if field == ActionField.STATUS:
        row.status = value.value
    elif field == ActionField.PRIORITY:
        row.priority = value.value
    else:
        row.assignee_id = value


class ExecutionEngine:
    """Executes PENDING previews all-or-nothing."""

    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        self._session = session
        self._settings = settings
        self._resolver = MatchResolver(session)
        self._previews = PreviewRepository(session)
        self._history = HistoryRepository(session)
        self._courses = CourseRepository(session)
        self._activities = ActivityRepository(session)

    async def execute(self, preview_id: str, actor: Actor) -> ExecutionResult:
        """Execute a preview.

        Raises:
            NotFoundError: unknown token.
            AuthorizationError: actor is neither the preview's creator nor an admin.
            GoneError: preview expired.
            ConflictError: preview already executed/cancelled, or lost an execute race.
            StalePreviewError: match set drifted beyond the configured tolerance.
        """
        record = await self._load_pending(preview_id, actor)

        # Plain copies: the savepoint rollback below expires ORM state.
        criteria_json = dict(record.criteria)
        action_json = dict(record.action)
        snapshot = [UUID(cid) for cid in record.matched_ids]

        criteria = Criteria.model_validate(criteria_json)
        action = BulkAction.model_validate(action_json)

        current = await self._resolver.resolve(criteria)
        drift = compute_drift(snapshot, current)
        self._check_staleness(preview_id, drift)

        rows, drift = await self._lock_targets(criteria, snapshot, drift)
        self._check_staleness(preview_id, drift)
        failures = self._check_rows(rows, action)
        if failures:
            return await self._record_failure(
                preview_id, criteria_json, action_json, actor, snapshot, drift,
                error=f"{len(failures)} of {len(rows)} courses cannot take this change",
                failures=failures,
            )

        target_ids = [row.course_id for row in rows]
        try:
            async with self._session.begin_nested():
                claimed = await self._previews.transition(
                    preview_id,
                    from_state=PreviewState.PENDING,
                    to_state=PreviewState.EXECUTED,
                    actor=actor.actor_id,
                )
                if not claimed:
                    msg = f"Preview {preview_id} was executed or cancelled concurrently."
                    raise ConflictError(msg)
                await self._apply(preview_id, rows, action, actor, criteria_json)
        except SQLAlchemyError as exc:
            logger.exception("Bulk execution of preview %s rolled back", preview_id)
            return await self._record_failure(
                preview_id, criteria_json, action_json, actor, snapshot, drift,
                error=f"{type(exc).__name__}: {exc}",
            )

        history = await self._history.record(
            preview_id=preview_id,
            action=action_json,
            criteria=criteria_json,
            affected_count=len(target_ids),
            performed_by=actor.actor_id,
            outcome=BulkOutcome.SUCCESS.value,
        )
        logger.info(
            "Bulk preview %s executed by %s: %d affected, %d new matches skipped",
            preview_id, actor.actor_id, len(target_ids), len(drift.added),
        )
        return ExecutionResult(
            preview_id=preview_id,
            outcome=BulkOutcome.SUCCESS,
            affected_count=len(target_ids),
            matched_count=len(snapshot),
            affected_ids=target_ids,
            skipped_new_matches=len(drift.added),
            dropped_matches=len(drift.dropped),
            history_id=history.history_id,
            executed_at=history.performed_at,
        )

    # ----- steps -----

    async def _load_pending(self, preview_id: str, actor: Actor) -> BulkPreviewRow:
        record = await self._previews.get(preview_id)
        if record is None:
            msg = f"Preview {preview_id} not found."
            raise NotFoundError(msg)

        ensure_owner_or_admin(record.created_by, actor, "execute this preview")

        state = PreviewState(record.state)
        expired = state == PreviewState.PENDING and ensure_utc(record.expires_at) <= utc_now()
        if state == PreviewState.EXPIRED or expired:
            msg = f"Preview {preview_id} has expired; create a new preview."
            raise GoneError(msg)
        if state != PreviewState.PENDING:
            msg = f"Preview {preview_id} is already {state.value}."
            raise ConflictError(msg)
        return record

    def _check_staleness(self, preview_id: str, drift: Drift) -> None:
        too_many_dropped = len(drift.dropped) > self._settings.BULK_STALENESS_TOLERANCE
        new_matches = self._settings.BULK_STALE_ON_NEW_MATCHES and bool(drift.added)
        if too_many_dropped or new_matches:
            logger.warning(
                "Stale bulk preview %s: %d dropped, %d added",
                preview_id, len(drift.dropped), len(drift.added),
            )
            msg = (
                f"Matched courses changed since preview {preview_id} was created "
                f"({len(drift.dropped)} no longer match, {len(drift.added)} newly match). "
                "Create a new preview."
            )
            raise StalePreviewError(msg, dropped_ids=drift.dropped, added_ids=drift.added)

    async def _lock_targets(self, criteria: Criteria, snapshot: list[UUID],
                            drift: Drift) -> tuple[list[CourseRow], Drift]:
        """Lock the still-matching targets in sub-batches.

        A target that stopped matching after the re-resolve joins the
        dropped set, so it goes through the staleness check again.
        """
        rows: list[CourseRow] = []
        for batch in chunked(drift.targets, self._settings.BULK_BATCH_SIZE):
            found = await self._courses.lock_matching(criteria, batch)
            rows.extend(found[cid] for cid in batch if cid in found)
        if len(rows) == len(drift.targets):
            return rows, drift

        locked = {row.course_id for row in rows}
        return rows, Drift(
            dropped=[cid for cid in snapshot if cid not in locked],
            added=drift.added,
            targets=[row.course_id for row in rows],
        )

    @staticmethod
    def _check_rows(rows: list[CourseRow], action: BulkAction) -> list[RowFailure]:
        failures: list[RowFailure] = []
        for row in rows:
            diff = impact.analyze(row, action)
            if not diff.is_valid:
                failures.append(RowFailure(course_id=row.course_id, reason="; ".join(diff.warnings)))
        return failures

    async def _apply(self, preview_id: str, rows: list[CourseRow], action: BulkAction,
                     actor: Actor, criteria_json: dict) -> None:
        now = utc_now()
        value = action.typed_value()
        for batch in chunked(rows, self._settings.BULK_BATCH_SIZE):
            for row in batch:
                before = impact.current_value(row, action.field)
                _assign(row, action.field, value)
                row.updated_at = now
                row.updated_by = actor.actor_id
                await self._activities.create(
                    entity_type="course",
                    entity_id=str(row.course_id),
                    action="bulk_updated",
                    user_id=actor.actor_id,
                    description=f"Bulk update of {action.field.value}",
                    metadata={
                        "preview_id": preview_id,
                        "changes": {action.field.value: {"from": before, "to": action.value}},
                    },
                )
            await self._session.flush()

        await self._activities.create(
            entity_type="bulk_operation",
            entity_id=preview_id,
            action="bulk_update_executed",
            user_id=actor.actor_id,
            description=f"Bulk update of {action.field.value} on {len(rows)} courses",
            metadata={
                "affected_count": len(rows),
                "criteria": criteria_json,
                "action": action.to_json(),
            },
        )
        await self._session.flush()

    async def _record_failure(
        self,
        preview_id: str,
        criteria_json: dict,
        action_json: dict,
        actor: Actor,
        snapshot: list[UUID],
        drift: Drift,
        *,
        error: str,
        failures: list[RowFailure] | None = None,
    ) -> ExecutionResult:
        failures = failures or []
        history = await self._history.record(
            preview_id=preview_id,
            action=action_json,
            criteria=criteria_json,
            affected_count=0,
            performed_by=actor.actor_id,
            outcome=BulkOutcome.FAILED.value,
            error_detail={
                "error": error,
                "failures": [f.model_dump(mode="json") for f in failures],
            },
        )
        logger.warning("Bulk preview %s failed for %s: %s", preview_id, actor.actor_id, error)
        return ExecutionResult(
            preview_id=preview_id,
            outcome=BulkOutcome.FAILED,
            affected_count=0,
            matched_count=len(snapshot),
            skipped_new_matches=len(drift.added),
            dropped_matches=len(drift.dropped),
            failures=failures,
            error=error,
            history_id=history.history_id,
            executed_at=history.performed_at,
        )
