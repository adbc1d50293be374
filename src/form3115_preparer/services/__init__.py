from form3115_preparer.services.adjustment import (
    Section481aAdjustment,
    apply_adjustment,
    calculate_481a_adjustment,
)
from form3115_preparer.services.dcn import DcnResolver, FilingRequirements
from form3115_preparer.services.filings import (
    DashboardStats,
    FilingService,
    SavedPart,
)
from form3115_preparer.services.pdf_generator import (
    FieldMap,
    FieldMapReport,
    PdfGenerator,
    pdf_filename,
    verify_field_map,
)
from form3115_preparer.services.validation import (
    ValidationResult,
    validate_filing,
    validate_part,
)

__all__ = [
    "DashboardStats",
    "DcnResolver",
    "FieldMap",
    "FieldMapReport",
    "FilingRequirements",
    "FilingService",
    "PdfGenerator",
    "SavedPart",
    "Section481aAdjustment",
    "ValidationResult",
    "apply_adjustment",
    "calculate_481a_adjustment",
    "pdf_filename",
    "validate_filing",
    "validate_part",
    "verify_field_map",
]
