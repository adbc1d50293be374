from form3115_preparer.domain.entities import Client, DcnReference, Filing
from form3115_preparer.domain.value_objects import (
    ChangeType,
    DcnCategory,
    FilingStatus,
    FormPart,
)

__all__ = [
    "ChangeType",
    "Client",
    "DcnCategory",
    "DcnReference",
    "Filing",
    "FilingStatus",
    "FormPart",
]

__version__ = "0.1.0"
