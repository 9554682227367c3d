"""Bulk operation repositories — preview store, history store, template store."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import BulkHistoryRow, BulkPreviewRow, BulkTemplateRow
from src.models.common import PreviewState, new_uuid7, utc_now


class PreviewRepository:
    """DB-backed preview store keyed by token.

    Rows are never updated except through transition(), which is a single
    conditional UPDATE so concurrent callers cannot both move a preview out
    of the same state.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, preview_id: str, criteria: dict, action: dict,
                     matched_ids: list[UUID], created_by: UUID,
                     expires_at: datetime,
                     template_id: UUID | None = None) -> BulkPreviewRow:
        row = BulkPreviewRow(
            preview_id=preview_id,
            criteria=criteria,
            action=action,
            matched_ids=[str(i) for i in matched_ids],
            matched_count=len(matched_ids),
            created_by=created_by,
            created_at=utc_now(),
            expires_at=expires_at,
            state=PreviewState.PENDING.value,
            template_id=template_id,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, preview_id: str) -> BulkPreviewRow | None:
        return await self._session.get(BulkPreviewRow, preview_id)

    async def transition(self, preview_id: str, *, from_state: PreviewState,
                         to_state: PreviewState,
                         actor: UUID | None = None) -> bool:
        """Compare-and-set the preview state. Returns False if the row was not in from_state."""
        result = await self._session.execute(
            update(BulkPreviewRow)
            .where(
                BulkPreviewRow.preview_id == preview_id,
                BulkPreviewRow.state == from_state.value,
            )
            .values(
                state=to_state.value,
                state_changed_at=utc_now(),
                state_changed_by=actor,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def expire_overdue(self, now: datetime) -> int:
        """Mark every PENDING preview past its expiry as EXPIRED."""
        result = await self._session.execute(
            update(BulkPreviewRow)
            .where(
                BulkPreviewRow.state == PreviewState.PENDING.value,
                BulkPreviewRow.expires_at <= now,
            )
            .values(state=PreviewState.EXPIRED.value, state_changed_at=now)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def purge_terminal(self, older_than: datetime) -> int:
        """Delete terminal previews whose last state change is older than the cutoff."""
        result = await self._session.execute(
            delete(BulkPreviewRow)
            .where(
                BulkPreviewRow.state != PreviewState.PENDING.value,
                BulkPreviewRow.state_changed_at < older_than,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def list_by_state(self, state: PreviewState) -> list[BulkPreviewRow]:
        result = await self._session.execute(
            select(BulkPreviewRow).where(BulkPreviewRow.state == state.value)
        )
        return list(result.scalars().all())


class HistoryRepository:
    """Append-only bulk history. No update or delete is exposed."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, *, preview_id: str, action: dict, criteria: dict,
                     affected_count: int, performed_by: UUID, outcome: str,
                     error_detail: dict | None = None) -> BulkHistoryRow:
        row = BulkHistoryRow(
            history_id=new_uuid7(),
            preview_id=preview_id,
            action=action,
            criteria=criteria,
            affected_count=affected_count,
            performed_by=performed_by,
            performed_at=utc_now(),
            outcome=outcome,
            error_detail=error_detail,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, history_id: UUID) -> BulkHistoryRow | None:
        return await self._session.get(BulkHistoryRow, history_id)

    async def list_entries(self, *, performed_by: UUID | None = None,
                           outcome: str | None = None,
                           performed_after: datetime | None = None,
                           performed_before: datetime | None = None,
                           limit: int = 20,
                           offset: int = 0) -> tuple[list[BulkHistoryRow], int]:
        """Newest-first page of history plus the total matching the filters."""
        conditions = []
        if performed_by is not None:
            conditions.append(BulkHistoryRow.performed_by == performed_by)
        if outcome is not None:
            conditions.append(BulkHistoryRow.outcome == outcome)
        if performed_after is not None:
            conditions.append(BulkHistoryRow.performed_at >= performed_after)
        if performed_before is not None:
            conditions.append(BulkHistoryRow.performed_at <= performed_before)

        total = (await self._session.execute(
            select(func.count()).select_from(BulkHistoryRow).where(*conditions)
        )).scalar_one()

        result = await self._session.execute(
            select(BulkHistoryRow)
            .where(*conditions)
            .order_by(BulkHistoryRow.performed_at.desc(), BulkHistoryRow.history_id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def get_by_preview(self, preview_id: str) -> list[BulkHistoryRow]:
        result = await self._session.execute(
            select(BulkHistoryRow)
            .where(BulkHistoryRow.preview_id == preview_id)
            .order_by(BulkHistoryRow.performed_at.asc(), BulkHistoryRow.history_id.asc())
        )
        return list(result.scalars().all())


class TemplateRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, template_id: UUID, name: str, criteria: dict,
                     action: dict, created_by: UUID,
                     description: str = "") -> BulkTemplateRow:
        now = utc_now()
        row = BulkTemplateRow(
            template_id=template_id, name=name, description=description,
            criteria=criteria, action=action, created_by=created_by,
            created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, template_id: UUID) -> BulkTemplateRow | None:
        return await self._session.get(BulkTemplateRow, template_id)

    async def get_by_name(self, name: str) -> BulkTemplateRow | None:
        result = await self._session.execute(
            select(BulkTemplateRow).where(BulkTemplateRow.name == name).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[BulkTemplateRow]:
        result = await self._session.execute(
            select(BulkTemplateRow).order_by(BulkTemplateRow.name.asc())
        )
        return list(result.scalars().all())

    async def update(self, template_id: UUID, *, name: str | None = None,
                     description: str | None = None,
                     criteria: dict | None = None,
                     action: dict | None = None) -> BulkTemplateRow | None:
        row = await self.get(template_id)
        if row is not None:
            if name is not None:
                row.name = name
            if description is not None:
                row.description = description
            if criteria is not None:
                row.criteria = criteria
            if action is not None:
                row.action = action
            row.updated_at = utc_now()
            await self._session.flush()
        return row

    async def delete(self, template_id: UUID) -> bool:
        row = await self.get(template_id)
        if row is None:
            return False
        await self._session.delete(row)
        await self._session.flush()
        return True
