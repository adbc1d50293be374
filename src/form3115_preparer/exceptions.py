"""Domain exception hierarchy for Form 3115 Preparer.

All domain-specific exceptions inherit from Form3115Error so callers can
catch every application error with a single base class while the API maps
each subclass onto its own status code.

Validators and the DCN resolver never raise: blocking problems are reported
through ValidationResult and lookup misses return None. Exceptions are kept
for conditions the caller cannot continue from.
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from form3115_preparer.services.validation import ValidationResult


class Form3115Error(Exception):
    """Base exception for all Form 3115 Preparer errors.

    Includes optional error_code for API responses and extra context.
    """

    error_code: str = "F3115_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Record Errors
# =============================================================================


class RecordNotFoundError(Form3115Error):
    """Base exception for lookups of owned records."""

    error_code = "NOT_FOUND"
    status_code = 404


class ClientNotFoundError(RecordNotFoundError):
    """Raised when a client does not exist or belongs to another owner."""

    error_code = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: UUID | str) -> None:
        super().__init__(
            f"Client not found: {client_id}",
            context={"client_id": str(client_id)},
        )


class FilingNotFoundError(RecordNotFoundError):
    """Raised when a filing does not exist or belongs to another owner."""

    error_code = "FILING_NOT_FOUND"

    def __init__(self, filing_id: UUID | str) -> None:
        super().__init__(
            f"Filing not found: {filing_id}",
            context={"filing_id": str(filing_id)},
        )


# =============================================================================
# Filing Workflow Errors
# =============================================================================


class FilingError(Form3115Error):
    """Base exception for filing workflow errors."""

    error_code = "FILING_ERROR"
    status_code = 400


class InvalidFormPartError(FilingError):
    """Raised when a part tag does not name a Form 3115 part or schedule."""

    error_code = "INVALID_FORM_PART"

    def __init__(self, part: str) -> None:
        super().__init__(
            f"Unknown form part: {part}",
            context={"part": part},
        )


class PartValidationError(FilingError):
    """Raised when a part save is refused because of blocking errors."""

    error_code = "PART_VALIDATION_FAILED"
    status_code = 422

    def __init__(self, part: str, result: "ValidationResult") -> None:
        super().__init__(
            f"Validation failed for {part}",
            context={
                "part": part,
                "errors": dict(result.errors),
                "warnings": dict(result.warnings),
            },
        )
        self.result = result


class InvalidStatusTransitionError(FilingError):
    """Raised when a filing is moved to a status it cannot take."""

    error_code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot move filing from {current} to {requested}",
            context={"current": current, "requested": requested},
        )


class AdjustmentError(FilingError):
    """Raised when the 481(a) calculator receives an unsupported spread."""

    error_code = "ADJUSTMENT_ERROR"

    def __init__(self, spread_period: object) -> None:
        super().__init__(
            f"Spread period must be 1 or 4 years, got {spread_period!r}",
            context={"spread_period": str(spread_period)},
        )


# =============================================================================
# PDF Errors
# =============================================================================


class PdfError(Form3115Error):
    """Base exception for PDF output errors."""

    error_code = "PDF_ERROR"
    status_code = 500


class PdfTemplateError(PdfError):
    """Raised when the Form 3115 template cannot be loaded."""

    error_code = "PDF_TEMPLATE_ERROR"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"PDF template could not be loaded from {path}: {reason}",
            context={"path": path},
        )


class FieldMapError(PdfError):
    """Raised when the field-map resource is missing or malformed."""

    error_code = "FIELD_MAP_ERROR"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Field map at {path} is invalid: {reason}",
            context={"path": path},
        )
