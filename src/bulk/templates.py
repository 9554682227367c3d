"""TemplateService — named, reusable bulk operations.

Templates store a criteria/action pair in normalized form. Applying one
always goes through PreviewEngine, so a template can never execute
anything the operator has not previewed.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk.access import ensure_owner_or_admin
from src.bulk.errors import BulkValidationError, ConflictError, NotFoundError
from src.bulk.preview import PreviewEngine
from src.bulk.validator import CriteriaValidator
from src.config.settings import Settings
from src.db.tables import BulkTemplateRow
from src.models.bulk import FieldError, PreviewResult
from src.models.common import Actor, new_uuid7
from src.repositories.bulk import TemplateRepository

logger = logging.getLogger(__name__)


class TemplateService:
    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        self._templates = TemplateRepository(session)
        self._validator = CriteriaValidator()
        self._previews = PreviewEngine(session, settings)

    async def create(self, *, name: str, criteria: Any, action: Any,
                     actor: Actor, description: str = "") -> BulkTemplateRow:
        """Validate and store a template.

        Raises:
            BulkValidationError: invalid criteria or action.
            ConflictError: a template with this name already exists.
        """
        request = self._validator.validate(criteria, action)
        await self._ensure_name_free(name)
        row = await self._templates.create(
            template_id=new_uuid7(),
            name=name,
            description=description,
            criteria=request.criteria.to_json(),
            action=request.action.to_json(),
            created_by=actor.actor_id,
        )
        logger.info("Bulk template %s (%s) created by %s", row.template_id, name, actor.actor_id)
        return row

    async def get(self, template_id: UUID) -> BulkTemplateRow:
        row = await self._templates.get(template_id)
        if row is None:
            msg = f"Template {template_id} not found."
            raise NotFoundError(msg)
        return row

    async def list_all(self) -> list[BulkTemplateRow]:
        return await self._templates.list_all()

    async def update(self, template_id: UUID, actor: Actor, *,
                     name: str | None = None, description: str | None = None,
                     criteria: Any = None, action: Any = None) -> BulkTemplateRow:
        """Partially update a template; criteria and action are re-validated as a pair."""
        row = await self.get(template_id)
        ensure_owner_or_admin(row.created_by, actor, "modify this template")

        if name is not None and name != row.name:
            await self._ensure_name_free(name)

        new_criteria = new_action = None
        if criteria is not None or action is not None:
            request = self._validator.validate(
                criteria if criteria is not None else row.criteria,
                action if action is not None else row.action,
            )
            new_criteria = request.criteria.to_json()
            new_action = request.action.to_json()

        updated = await self._templates.update(
            template_id,
            name=name,
            description=description,
            criteria=new_criteria,
            action=new_action,
        )
        logger.info("Bulk template %s updated by %s", template_id, actor.actor_id)
        return updated

    async def delete(self, template_id: UUID, actor: Actor) -> None:
        row = await self.get(template_id)
        ensure_owner_or_admin(row.created_by, actor, "delete this template")
        await self._templates.delete(template_id)
        logger.info("Bulk template %s deleted by %s", template_id, actor.actor_id)

    async def apply(self, template_id: UUID, actor: Actor,
                    additional_criteria: dict | None = None) -> PreviewResult:
        """Preview the template's operation, optionally narrowed by extra predicates.

        Extra predicates override stored ones with the same name. A null extra
        value is ignored; it never removes a stored predicate.
        """
        row = await self.get(template_id)
        if additional_criteria is not None and not isinstance(additional_criteria, dict):
            raise BulkValidationError([FieldError(
                field="additional_criteria", message="additional_criteria must be an object",
            )])
        extra = {k: v for k, v in (additional_criteria or {}).items() if v is not None}
        criteria = {**row.criteria, **extra}
        return await self._previews.preview(
            criteria, dict(row.action), actor, template_id=row.template_id,
        )

    async def _ensure_name_free(self, name: str) -> None:
        if await self._templates.get_by_name(name) is not None:
            msg = f"A template named '{name}' already exists."
            raise ConflictError(msg)
