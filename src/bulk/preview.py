"""PreviewEngine — non-committing preview of a bulk operation.

validate → resolve matches → issue token → store PENDING snapshot →
return count, bounded sample of diffs, impact summary and expiry.

No locks are taken: previews are read-only against courses and concurrent
calls with the same criteria produce independent tokens over identical
match sets.
"""

import logging
import secrets
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk import impact
from src.bulk.errors import BulkValidationError
from src.bulk.resolver import MatchResolver
from src.bulk.validator import CriteriaValidator
from src.config.settings import Settings
from src.models.bulk import FieldError, PreviewResult
from src.models.common import Actor, utc_now
from src.repositories.bulk import PreviewRepository

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16  # 128-bit


def new_preview_token() -> str:
    """Unguessable URL-safe preview token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


class PreviewEngine:
    """Builds previews and stores their snapshots."""

    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        self._settings = settings
        self._validator = CriteriaValidator()
        self._resolver = MatchResolver(session)
        self._previews = PreviewRepository(session)

    async def preview(
        self,
        raw_criteria: Any,
        raw_action: Any,
        actor: Actor,
        *,
        template_id: UUID | None = None,
    ) -> PreviewResult:
        """Compute and store a preview.

        Raises:
            BulkValidationError: malformed criteria/action, or more matches
                than BULK_MAX_MATCHES.
        """
        request = self._validator.validate(raw_criteria, raw_action)

        rows = await self._resolver.fetch(request.criteria)
        if len(rows) > self._settings.BULK_MAX_MATCHES:
            raise BulkValidationError([FieldError(
                field="criteria",
                message=(
                    f"{len(rows)} courses match; at most "
                    f"{self._settings.BULK_MAX_MATCHES} are allowed per operation"
                ),
            )], message="Too many courses selected")

        diffs = [impact.analyze(row, request.action) for row in rows]
        summary = impact.summarize(diffs)

        expires_at = utc_now() + timedelta(seconds=self._settings.BULK_PREVIEW_TTL_SECONDS)
        record = await self._previews.create(
            preview_id=new_preview_token(),
            criteria=request.criteria.to_json(),
            action=request.action.to_json(),
            matched_ids=[row.course_id for row in rows],
            created_by=actor.actor_id,
            expires_at=expires_at,
            template_id=template_id,
        )

        logger.info(
            "Bulk preview %s by %s: %d matches (%d invalid), fields=%s",
            record.preview_id, actor.actor_id, len(rows), summary.invalid,
            request.criteria.present_fields(),
        )

        return PreviewResult(
            preview_id=record.preview_id,
            matched_count=len(rows),
            sample_diffs=diffs[: self._settings.BULK_PREVIEW_SAMPLE_SIZE],
            expires_at=expires_at,
            impact=summary,
            warnings=impact.overall_warnings(summary, rows),
            can_execute=summary.invalid == 0,
            criteria=record.criteria,
            action=record.action,
            template_id=template_id,
        )
