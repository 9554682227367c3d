"""FastAPI bulk operation endpoints.

POST   /v1/bulk/validate                 — validate criteria + action
POST   /v1/bulk/preview                  — preview, returns a token
GET    /v1/bulk/previews/{preview_id}    — preview status
POST   /v1/bulk/execute                  — execute a preview token
DELETE /v1/bulk/cancel/{preview_id}      — cancel a preview token
GET    /v1/bulk/history                  — audit history, filterable and paginated
GET    /v1/bulk/templates                — list templates
POST   /v1/bulk/templates                — create template
GET    /v1/bulk/templates/{template_id}  — get template
PUT    /v1/bulk/templates/{template_id}  — update template
DELETE /v1/bulk/templates/{template_id}  — delete template
POST   /v1/bulk/template/{template_id}   — apply template (→ preview)

All endpoints require the admin or manager role.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.auth import BULK_ROLES, require_roles
from src.api.dependencies import (
    get_cancellation_registry,
    get_execution_engine,
    get_history_repo,
    get_notification_dispatcher,
    get_preview_engine,
    get_preview_repo,
    get_template_service,
)
from src.bulk.access import ensure_owner_or_admin
from src.bulk.cancellation import CancellationRegistry
from src.bulk.errors import BulkOperationError, NotFoundError
from src.bulk.execution import ExecutionEngine
from src.bulk.notifications import NotificationDispatcher, dispatch_safely
from src.bulk.preview import PreviewEngine
from src.bulk.templates import TemplateService
from src.bulk.validator import CriteriaValidator
from src.models.bulk import (
    BulkTemplate,
    CancelResult,
    ExecutionResult,
    HistoryRecord,
    PreviewRecord,
    PreviewResult,
)
from src.models.common import Actor, BulkOutcome, PreviewState, utc_now
from src.repositories.bulk import HistoryRepository, PreviewRepository

router = APIRouter(prefix="/v1/bulk", tags=["bulk"])

logger = structlog.get_logger()

_validator = CriteriaValidator()
_bulk_actor = require_roles(*BULK_ROLES)


def _http_error(exc: BulkOperationError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class BulkRequest(BaseModel):
    # Left untyped so malformed payloads reach CriteriaValidator and are
    # reported field by field as a 400.
    criteria: Any = None
    action: Any = None


class ValidateResponse(BaseModel):
    valid: bool
    criteria: dict
    action: dict


class ExecuteRequest(BaseModel):
    preview_id: str = Field(..., min_length=1, max_length=64)


class HistoryPageResponse(BaseModel):
    items: list[HistoryRecord]
    total: int
    limit: int
    offset: int
    has_more: bool


class CreateTemplateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    criteria: Any = None
    action: Any = None


class UpdateTemplateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    criteria: Any = None
    action: Any = None


class ApplyTemplateRequest(BaseModel):
    additional_criteria: Any = None


class TemplateListResponse(BaseModel):
    items: list[BulkTemplate]
    total: int


# ---------------------------------------------------------------------------
# Preview / execute / cancel
# ---------------------------------------------------------------------------


@router.post("/validate", response_model=ValidateResponse)
async def validate_request(
    body: BulkRequest,
    actor: Actor = Depends(_bulk_actor),
) -> ValidateResponse:
    """Validate criteria and action without touching the database."""
    try:
        request = _validator.validate(body.criteria, body.action)
    except BulkOperationError as exc:
        raise _http_error(exc) from exc
    return ValidateResponse(
        valid=True,
        criteria=request.criteria.to_json(),
        action=request.action.to_json(),
    )


@router.post("/preview", response_model=PreviewResult)
async def create_preview(
    body: BulkRequest,
    actor: Actor = Depends(_bulk_actor),
    engine: PreviewEngine = Depends(get_preview_engine),
) -> PreviewResult:
    """Preview a bulk operation; nothing is changed until the token is executed."""
    try:
        result = await engine.preview(body.criteria, body.action, actor)
    except BulkOperationError as exc:
        logger.info("bulk_preview_rejected", actor_id=str(actor.actor_id), code=exc.code)
        raise _http_error(exc) from exc

    logger.info(
        "bulk_preview_created",
        preview_id=result.preview_id,
        actor_id=str(actor.actor_id),
        matched_count=result.matched_count,
        can_execute=result.can_execute,
    )
    return result


@router.get("/previews/{preview_id}", response_model=PreviewRecord)
async def get_preview_status(
    preview_id: str,
    actor: Actor = Depends(_bulk_actor),
    repo: PreviewRepository = Depends(get_preview_repo),
) -> PreviewRecord:
    """Current state of a preview. Overdue PENDING previews are reported as EXPIRED."""
    try:
        row = await repo.get(preview_id)
        if row is None:
            msg = f"Preview {preview_id} not found."
            raise NotFoundError(msg)
        ensure_owner_or_admin(row.created_by, actor, "view this preview")
    except BulkOperationError as exc:
        raise _http_error(exc) from exc

    record = PreviewRecord.model_validate(row, from_attributes=True)
    if record.state == PreviewState.PENDING and record.expires_at <= utc_now():
        record = record.model_copy(update={"state": PreviewState.EXPIRED})
    return record


@router.post("/execute", response_model=ExecutionResult)
async def execute_preview(
    body: ExecuteRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(_bulk_actor),
    engine: ExecutionEngine = Depends(get_execution_engine),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ExecutionResult | JSONResponse:
    """Execute a previewed operation all-or-nothing.

    A FAILED outcome is returned as 422 (not raised) so its history entry
    is committed with the request.
    """
    try:
        result = await engine.execute(body.preview_id, actor)
    except BulkOperationError as exc:
        logger.warning(
            "bulk_execute_rejected",
            preview_id=body.preview_id,
            actor_id=str(actor.actor_id),
            code=exc.code,
        )
        raise _http_error(exc) from exc

    if result.outcome == BulkOutcome.FAILED:
        logger.warning(
            "bulk_execute_failed",
            preview_id=result.preview_id,
            actor_id=str(actor.actor_id),
            error=result.error,
            failures=len(result.failures),
        )
        return JSONResponse(status_code=422, content=result.model_dump(mode="json"))

    logger.info(
        "bulk_executed",
        preview_id=result.preview_id,
        actor_id=str(actor.actor_id),
        affected_count=result.affected_count,
        skipped_new_matches=result.skipped_new_matches,
    )
    background_tasks.add_task(dispatch_safely, dispatcher, result, actor)
    return result


@router.delete("/cancel/{preview_id}", response_model=CancelResult)
async def cancel_preview(
    preview_id: str,
    actor: Actor = Depends(_bulk_actor),
    registry: CancellationRegistry = Depends(get_cancellation_registry),
) -> CancelResult:
    """Cancel a pending preview. Already-terminal previews return 200 with cancelled=false."""
    try:
        result = await registry.cancel(preview_id, actor)
    except BulkOperationError as exc:
        raise _http_error(exc) from exc

    logger.info(
        "bulk_preview_cancel",
        preview_id=preview_id,
        actor_id=str(actor.actor_id),
        state=result.state.value,
        cancelled=result.cancelled,
    )
    return result


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@router.get("/history", response_model=HistoryPageResponse)
async def list_history(
    performed_by: UUID | None = None,
    outcome: BulkOutcome | None = None,
    performed_after: datetime | None = None,
    performed_before: datetime | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(_bulk_actor),
    repo: HistoryRepository = Depends(get_history_repo),
) -> HistoryPageResponse:
    """Bulk operation history, newest first."""
    rows, total = await repo.list_entries(
        performed_by=performed_by,
        outcome=outcome.value if outcome is not None else None,
        performed_after=performed_after,
        performed_before=performed_before,
        limit=limit,
        offset=offset,
    )
    return HistoryPageResponse(
        items=[HistoryRecord.model_validate(r, from_attributes=True) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(rows) < total,
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@router.get("/templates", response_model=TemplateListResponse)
async def list_templates(
    actor: Actor = Depends(_bulk_actor),
    service: TemplateService = Depends(get_template_service),
) -> TemplateListResponse:
    rows = await service.list_all()
    return TemplateListResponse(items=[BulkTemplate.model_validate(r, from_attributes=True) for r in rows], total=len(rows))


@router.post("/templates", status_code=201, response_model=BulkTemplate)
async def create_template(
    body: CreateTemplateRequest,
    actor: Actor = Depends(_bulk_actor),
    service: TemplateService = Depends(get_template_service),
) -> BulkTemplate:
    """Create a template; its criteria and action are validated and normalized first."""
    try:
        row = await service.create(
            name=body.name,
            description=body.description,
            criteria=body.criteria,
            action=body.action,
            actor=actor,
        )
    except BulkOperationError as exc:
        raise _http_error(exc) from exc
    logger.info("bulk_template_created", template_id=str(row.template_id), actor_id=str(actor.actor_id))
    return BulkTemplate.model_validate(row, from_attributes=True)


@router.get("/templates/{template_id}", response_model=BulkTemplate)
async def get_template(
    template_id: UUID,
    actor: Actor = Depends(_bulk_actor),
    service: TemplateService = Depends(get_template_service),
) -> BulkTemplate:
    try:
        row = await service.get(template_id)
    except BulkOperationError as exc:
        raise _http_error(exc) from exc
    return BulkTemplate.model_validate(row, from_attributes=True)


@router.put("/templates/{template_id}", response_model=BulkTemplate)
async def update_template(
    template_id: UUID,
    body: UpdateTemplateRequest,
    actor: Actor = Depends(_bulk_actor),
    service: TemplateService = Depends(get_template_service),
) -> BulkTemplate:
    try:
        row = await service.update(
            template_id,
            actor,
            name=body.name,
            description=body.description,
            criteria=body.criteria,
            action=body.action,
        )
    except BulkOperationError as exc:
        raise _http_error(exc) from exc
    logger.info("bulk_template_updated", template_id=str(template_id), actor_id=str(actor.actor_id))
    return BulkTemplate.model_validate(row, from_attributes=True)


@router.delete("/templates/{template_id}", status_code=204)
async def delete_template(
    template_id: UUID,
    actor: Actor = Depends(_bulk_actor),
    service: TemplateService = Depends(get_template_service),
) -> Response:
    try:
        await service.delete(template_id, actor)
    except BulkOperationError as exc:
        raise _http_error(exc) from exc
    logger.info("bulk_template_deleted", template_id=str(template_id), actor_id=str(actor.actor_id))
    return Response(status_code=204)


@router.post("/template/{template_id}", response_model=PreviewResult)
async def apply_template(
    template_id: UUID,
    body: ApplyTemplateRequest | None = None,
    actor: Actor = Depends(_bulk_actor),
    service: TemplateService = Depends(get_template_service),
) -> PreviewResult:
    """Apply a template. Always produces a preview; execution still needs its token."""
    additional = body.additional_criteria if body is not None else None
    try:
        result = await service.apply(template_id, actor, additional_criteria=additional)
    except BulkOperationError as exc:
        raise _http_error(exc) from exc

    logger.info(
        "bulk_template_applied",
        template_id=str(template_id),
        preview_id=result.preview_id,
        actor_id=str(actor.actor_id),
        matched_count=result.matched_count,
    )
    return result
