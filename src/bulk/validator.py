"""Criteria/action validation for bulk operations.

Turns raw request payloads into a normalized Criteria + BulkAction pair.
Every violation in both objects is collected before failing, so the caller
can fix all of them in one round trip.

Deterministic — no database access.
"""

from collections.abc import Callable
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from src.bulk.errors import BulkValidationError
from src.models.bulk import BulkAction, Criteria, FieldError, ValidatedRequest
from src.models.common import ActionField, CoursePriority, CourseStatus

_ACTION_KEYS = frozenset({"field", "value"})


def _enum_choices(enum_cls, exclude: frozenset = frozenset()) -> str:
    return ", ".join(m.value for m in enum_cls if m not in exclude)


def _normalize_status(value: Any) -> str:
    if not isinstance(value, str):
        msg = "status must be a string"
        raise ValueError(msg)
    try:
        status = CourseStatus(value)
    except ValueError:
        msg = f"unknown status '{value}'; expected one of: {_enum_choices(CourseStatus, frozenset({CourseStatus.DELETED}))}"
        raise ValueError(msg) from None
    if status == CourseStatus.DELETED:
        msg = "bulk actions cannot delete courses"
        raise ValueError(msg)
    return status.value


def _normalize_priority(value: Any) -> str:
    if not isinstance(value, str):
        msg = "priority must be a string"
        raise ValueError(msg)
    try:
        return CoursePriority(value).value
    except ValueError:
        msg = f"unknown priority '{value}'; expected one of: {_enum_choices(CoursePriority)}"
        raise ValueError(msg) from None


def _normalize_assignee(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, str):
        try:
            return str(UUID(value))
        except ValueError:
            pass
    msg = "assignee must be a user UUID or null"
    raise ValueError(msg)


_VALUE_NORMALIZERS: dict[ActionField, Callable[[Any], str | None]] = {
    ActionField.STATUS: _normalize_status,
    ActionField.PRIORITY: _normalize_priority,
    ActionField.ASSIGNEE: _normalize_assignee,
}


def _pydantic_errors(exc: ValidationError, prefix: str) -> list[FieldError]:
    errors: list[FieldError] = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"])
        message = err["msg"].removeprefix("Value error, ")
        errors.append(FieldError(field=f"{prefix}.{path}" if path else prefix, message=message))
    return errors


class CriteriaValidator:
    """Validates bulk criteria and actions against the course domain."""

    def validate(self, raw_criteria: Any, raw_action: Any) -> ValidatedRequest:
        """Validate both payloads.

        Raises:
            BulkValidationError: listing every violation across criteria and action.
        """
        criteria, criteria_errors = self._check_criteria(raw_criteria)
        action, action_errors = self._check_action(raw_action)

        errors = criteria_errors + action_errors
        if errors:
            raise BulkValidationError(errors)
        return ValidatedRequest(criteria=criteria, action=action)

    def validate_criteria(self, raw_criteria: Any) -> Criteria:
        """Validate criteria alone (used by the course listing filter)."""
        criteria, errors = self._check_criteria(raw_criteria)
        if errors:
            raise BulkValidationError(errors, message="Invalid criteria")
        return criteria

    # ----- internals -----

    def _check_criteria(self, raw: Any) -> tuple[Criteria | None, list[FieldError]]:
        if not isinstance(raw, dict):
            return None, [FieldError(field="criteria", message="criteria must be an object")]
        try:
            return Criteria.model_validate(raw), []
        except ValidationError as exc:
            return None, _pydantic_errors(exc, "criteria")

    def _check_action(self, raw: Any) -> tuple[BulkAction | None, list[FieldError]]:
        if not isinstance(raw, dict):
            return None, [FieldError(field="action", message="action must be an object")]

        errors = [
            FieldError(field=f"action.{key}", message="unknown action key")
            for key in sorted(set(raw) - _ACTION_KEYS)
        ]

        field: ActionField | None = None
        raw_field = raw.get("field")
        if raw_field is None:
            errors.append(FieldError(field="action.field", message="field is required"))
        elif not isinstance(raw_field, str) or raw_field not in {f.value for f in ActionField}:
            errors.append(FieldError(
                field="action.field",
                message=f"field must be one of: {_enum_choices(ActionField)}",
            ))
        else:
            field = ActionField(raw_field)

        value: str | None = None
        if "value" not in raw:
            errors.append(FieldError(field="action.value", message="value is required"))
        elif field is not None:
            try:
                value = _VALUE_NORMALIZERS[field](raw["value"])
            except ValueError as exc:
                errors.append(FieldError(field="action.value", message=str(exc)))

        if errors:
            return None, errors
        return BulkAction(field=field, value=value), []
