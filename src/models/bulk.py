"""Bulk operation models — criteria, actions, previews, execution results, history, templates."""

from datetime import date
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator, model_validator

from src.models.common import (
    ActionField,
    BulkOutcome,
    CourseFlowBase,
    CoursePriority,
    CourseStatus,
    ImpactLevel,
    PreviewState,
    UTCTimestamp,
    UUIDv7,
    new_uuid7,
    utc_now,
)

MAX_EXPLICIT_IDS = 100


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------


class DateRange(CourseFlowBase):
    """Inclusive due-date window. At least one bound is required."""

    model_config = ConfigDict(extra="forbid")

    after: date | None = None
    before: date | None = None

    @model_validator(mode="after")
    def _bounds(self) -> "DateRange":
        if self.after is None and self.before is None:
            msg = "date range needs 'after', 'before' or both"
            raise ValueError(msg)
        if self.after is not None and self.before is not None and self.after > self.before:
            msg = "'after' must not be later than 'before'"
            raise ValueError(msg)
        return self


class Criteria(CourseFlowBase):
    """Selection predicates over courses. All present predicates are ANDed.

    An empty criteria object is rejected so a bulk operation can never
    select every course by accident.
    """

    model_config = ConfigDict(extra="forbid")

    status: CourseStatus | None = None
    priority: CoursePriority | None = None
    owner_id: UUID | None = None
    assignee_id: UUID | None = None
    course_ids: list[UUID] | None = Field(default=None, min_length=1, max_length=MAX_EXPLICIT_IDS)
    due_date: DateRange | None = None
    search: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("status")
    @classmethod
    def _no_deleted(cls, value: CourseStatus | None) -> CourseStatus | None:
        if value == CourseStatus.DELETED:
            msg = "deleted courses cannot be selected"
            raise ValueError(msg)
        return value

    @field_validator("course_ids")
    @classmethod
    def _dedupe_ids(cls, value: list[UUID] | None) -> list[UUID] | None:
        if value is None:
            return None
        return list(dict.fromkeys(value))

    @field_validator("search")
    @classmethod
    def _strip_search(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            msg = "search must not be blank"
            raise ValueError(msg)
        return stripped

    @model_validator(mode="after")
    def _at_least_one_predicate(self) -> "Criteria":
        if not self.present_fields():
            msg = "at least one predicate is required"
            raise ValueError(msg)
        return self

    def present_fields(self) -> list[str]:
        """Names of the predicates that are set."""
        return [name for name in type(self).model_fields if getattr(self, name) is not None]

    def to_json(self) -> dict:
        """Normalized JSON form stored with previews, history and templates."""
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Action
# ---------------------------------------------------------------------------


class BulkAction(CourseFlowBase):
    """Target field and its new value, already validated for the field's domain.

    Values are stored in their JSON form: the enum value for status and
    priority, the UUID string (or None to unassign) for assignee.
    """

    model_config = ConfigDict(extra="forbid")

    field: ActionField
    value: str | None = None

    def typed_value(self) -> CourseStatus | CoursePriority | UUID | None:
        """Value converted to the column's Python type."""
        if self.field == ActionField.STATUS:
            return CourseStatus(self.value)
        if self.field == ActionField.PRIORITY:
            return CoursePriority(self.value)
        return UUID(self.value) if self.value is not None else None

    def to_json(self) -> dict:
        return self.model_dump(mode="json")


class FieldError(CourseFlowBase, frozen=True):
    """One validation problem, addressed by a dotted path such as 'criteria.status'."""

    field: str
    message: str


class ValidatedRequest(CourseFlowBase, frozen=True):
    """Normalized criteria + action pair."""

    criteria: Criteria
    action: BulkAction


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


class SampleDiff(CourseFlowBase):
    """What the action would do to one matched course."""

    course_id: UUID
    title: str
    field: ActionField
    current_value: str | None = None
    new_value: str | None = None
    changed: bool
    impact_level: ImpactLevel = ImpactLevel.LOW
    warnings: list[str] = Field(default_factory=list)
    is_valid: bool = True


class ImpactSummary(CourseFlowBase):
    """Impact counts over the whole matched set (not just the sample)."""

    high: int = 0
    medium: int = 0
    low: int = 0
    unchanged: int = 0
    invalid: int = 0


class PreviewResult(CourseFlowBase):
    """Non-committing preview handed back to the operator."""

    preview_id: str
    matched_count: int = Field(..., ge=0)
    sample_diffs: list[SampleDiff] = Field(default_factory=list)
    expires_at: UTCTimestamp
    impact: ImpactSummary = Field(default_factory=ImpactSummary)
    warnings: list[str] = Field(default_factory=list)
    can_execute: bool = True
    criteria: dict = Field(default_factory=dict)
    action: dict = Field(default_factory=dict)
    template_id: UUID | None = None


class PreviewRecord(CourseFlowBase):
    """Stored snapshot behind a preview token."""

    preview_id: str
    criteria: dict
    action: dict
    matched_ids: list[UUID]
    matched_count: int
    created_by: UUID
    created_at: UTCTimestamp
    expires_at: UTCTimestamp
    state: PreviewState
    state_changed_at: UTCTimestamp | None = None
    state_changed_by: UUID | None = None
    template_id: UUID | None = None


# ---------------------------------------------------------------------------
# Execution / cancellation
# ---------------------------------------------------------------------------


class RowFailure(CourseFlowBase, frozen=True):
    """Why a single course could not take the action."""

    course_id: UUID
    reason: str


class ExecutionResult(CourseFlowBase):
    """Outcome of executing a preview."""

    preview_id: str
    outcome: BulkOutcome
    affected_count: int = Field(default=0, ge=0)
    matched_count: int = Field(default=0, ge=0)
    affected_ids: list[UUID] = Field(default_factory=list)
    skipped_new_matches: int = Field(default=0, ge=0)
    dropped_matches: int = Field(default=0, ge=0)
    failures: list[RowFailure] = Field(default_factory=list)
    error: str | None = None
    history_id: UUID | None = None
    executed_at: UTCTimestamp = Field(default_factory=utc_now)


class CancelResult(CourseFlowBase):
    """Result of a cancel request. `cancelled` is False when the preview was already terminal."""

    preview_id: str
    state: PreviewState
    cancelled: bool


# ---------------------------------------------------------------------------
# History and templates
# ---------------------------------------------------------------------------


class HistoryRecord(CourseFlowBase, frozen=True):
    """Immutable audit entry of an executed (or failed) bulk operation."""

    history_id: UUIDv7 = Field(default_factory=new_uuid7)
    preview_id: str
    action: dict
    criteria: dict
    affected_count: int = Field(..., ge=0)
    performed_by: UUID
    performed_at: UTCTimestamp = Field(default_factory=utc_now)
    outcome: BulkOutcome
    error_detail: dict | None = None


class BulkTemplate(CourseFlowBase):
    """Named, reusable (criteria, action) pair."""

    template_id: UUIDv7 = Field(default_factory=new_uuid7)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    criteria: dict
    action: dict
    created_by: UUID
    created_at: UTCTimestamp = Field(default_factory=utc_now)
    updated_at: UTCTimestamp = Field(default_factory=utc_now)
