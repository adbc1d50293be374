from form3115_preparer.repositories.interfaces import (
    ClientRepository,
    DcnReferenceRepository,
    FilingRepository,
)
from form3115_preparer.repositories.sqlite import (
    SQLiteClientRepository,
    SQLiteDatabase,
    SQLiteDcnReferenceRepository,
    SQLiteFilingRepository,
)

__all__ = [
    "ClientRepository",
    "DcnReferenceRepository",
    "FilingRepository",
    "SQLiteClientRepository",
    "SQLiteDatabase",
    "SQLiteDcnReferenceRepository",
    "SQLiteFilingRepository",
]
