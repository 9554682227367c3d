"""Activity log repository — append-only feed of user actions."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import ActivityRow
from src.models.common import new_uuid7, utc_now


class ActivityRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, entity_type: str, entity_id: str, action: str,
                     user_id: UUID | None, description: str = "",
                     metadata: dict | None = None) -> ActivityRow:
        row = ActivityRow(
            activity_id=new_uuid7(),
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            description=description,
            user_id=user_id,
            metadata_json=metadata or {},
            created_at=utc_now(),
        )
        # No flush: bulk execution adds many entries and flushes once per sub-batch.
        self._session.add(row)
        return row

    async def get_by_entity(self, entity_type: str, entity_id: str) -> list[ActivityRow]:
        result = await self._session.execute(
            select(ActivityRow)
            .where(ActivityRow.entity_type == entity_type, ActivityRow.entity_id == entity_id)
            .order_by(ActivityRow.created_at.asc(), ActivityRow.activity_id.asc())
        )
        return list(result.scalars().all())

    async def get_by_action(self, action: str) -> list[ActivityRow]:
        result = await self._session.execute(
            select(ActivityRow).where(ActivityRow.action == action)
        )
        return list(result.scalars().all())
