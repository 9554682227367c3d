"""Bulk operation error taxonomy.

Each error carries the HTTP status and machine code the API layer reports.
Domain code raises these; src/api/bulk.py converts them to HTTPException.
"""

from collections.abc import Sequence

from src.models.bulk import FieldError


class BulkOperationError(Exception):
    """Base class for every error raised by the bulk engine."""

    status_code = 500
    code = "BULK_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class BulkValidationError(BulkOperationError):
    """Malformed criteria or action. Lists every offending field."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: Sequence[FieldError], message: str = "Invalid bulk operation request") -> None:
        super().__init__(message)
        self.errors = list(errors)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["errors"] = [e.model_dump() for e in self.errors]
        return detail

    def __str__(self) -> str:
        fields = ", ".join(f"{e.field}: {e.message}" for e in self.errors)
        return f"{self.message} ({fields})"


class AuthorizationError(BulkOperationError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(BulkOperationError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(BulkOperationError):
    """Preview is no longer PENDING, or lost an execute race."""

    status_code = 409
    code = "CONFLICT"


class StalePreviewError(ConflictError):
    """Matched set drifted since the preview was shown to the operator."""

    code = "STALE_PREVIEW"

    def __init__(self, message: str, *, dropped_ids: Sequence, added_ids: Sequence) -> None:
        super().__init__(message)
        self.dropped_ids = [str(i) for i in dropped_ids]
        self.added_ids = [str(i) for i in added_ids]

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["dropped_ids"] = self.dropped_ids
        detail["added_ids"] = self.added_ids
        return detail


class GoneError(BulkOperationError):
    """Preview expired before it was executed."""

    status_code = 410
    code = "PREVIEW_EXPIRED"
