"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from uuid import UUID

from form3115_preparer.domain.entities import Client, DcnReference, Filing
from form3115_preparer.domain.value_objects import (
    ChangeType,
    DcnCategory,
    EntityType,
    FilingStatus,
    FormPart,
)
from form3115_preparer.repositories.interfaces import (
    ClientRepository,
    DcnReferenceRepository,
    FilingRepository,
)

# One TEXT column per part, e.g. FormPart.SCHEDULE_A -> "schedule_a"
PAYLOAD_COLUMNS: dict[FormPart, str] = {
    part: part.value.replace("-", "_") for part in FormPart
}


class SQLiteDatabase:
    """SQLite database connection manager."""

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path, check_same_thread=self._check_same_thread
            )
            self._connection.row_factory = sqlite3.Row
            # Cascading client deletes depend on this
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        payload_columns = ",\n".join(
            f"                {column} TEXT" for column in PAYLOAD_COLUMNS.values()
        )
        conn.executescript(
            f"""
            -- Clients table
            CREATE TABLE IF NOT EXISTS clients (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                ein TEXT,
                entity_type TEXT,
                address TEXT,
                city TEXT,
                state TEXT,
                zip_code TEXT,
                contact_name TEXT,
                contact_phone TEXT,
                contact_email TEXT,
                tax_year_end TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_clients_owner ON clients(owner_id);

            -- Filings table; dcn deliberately has no foreign key so manually
            -- entered numbers without a reference row can still be stored
            CREATE TABLE IF NOT EXISTS filings (
                id TEXT PRIMARY KEY,
                client_id TEXT NOT NULL,
                tax_year INTEGER NOT NULL,
                dcn TEXT,
                change_type TEXT,
                status TEXT NOT NULL DEFAULT 'draft',
                last_saved_step TEXT,
                completion_percentage INTEGER NOT NULL DEFAULT 0,
{payload_columns},
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (client_id) REFERENCES clients(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_filings_client ON filings(client_id);
            CREATE INDEX IF NOT EXISTS idx_filings_status ON filings(status);

            -- DCN reference table
            CREATE TABLE IF NOT EXISTS dcn_references (
                id TEXT PRIMARY KEY,
                dcn_number TEXT NOT NULL UNIQUE,
                description TEXT NOT NULL,
                category TEXT NOT NULL,
                is_automatic INTEGER NOT NULL DEFAULT 1,
                requires_481a INTEGER NOT NULL DEFAULT 0,
                spread_period INTEGER,
                requires_schedule_a INTEGER NOT NULL DEFAULT 0,
                requires_schedule_b INTEGER NOT NULL DEFAULT 0,
                requires_schedule_c INTEGER NOT NULL DEFAULT 0,
                requires_schedule_d INTEGER NOT NULL DEFAULT 0,
                requires_schedule_e INTEGER NOT NULL DEFAULT 0,
                rev_proc_section TEXT,
                rev_proc TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                CHECK (spread_period IS NULL OR spread_period IN (1, 4))
            );
            CREATE INDEX IF NOT EXISTS idx_dcn_references_category ON dcn_references(category);
            """
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SQLiteClientRepository(ClientRepository):
    """SQLite implementation of ClientRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, client: Client) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO clients (id, owner_id, name, ein, entity_type, address, city, state,
                                 zip_code, contact_name, contact_phone, contact_email,
                                 tax_year_end, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(client.id),
                client.owner_id,
                client.name,
                client.ein,
                client.entity_type.value if client.entity_type else None,
                client.address,
                client.city,
                client.state,
                client.zip_code,
                client.contact_name,
                client.contact_phone,
                client.contact_email,
                client.tax_year_end,
                client.created_at.isoformat(),
                client.updated_at.isoformat(),
            ),
        )
        conn.commit()

    def get(self, client_id: UUID) -> Client | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM clients WHERE id = ?", (str(client_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_client(row)

    def list_by_owner(self, owner_id: str) -> Iterable[Client]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM clients WHERE owner_id = ? ORDER BY updated_at DESC",
            (owner_id,),
        ).fetchall()
        return [self._row_to_client(row) for row in rows]

    def update(self, client: Client) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE clients SET
                name = ?,
                ein = ?,
                entity_type = ?,
                address = ?,
                city = ?,
                state = ?,
                zip_code = ?,
                contact_name = ?,
                contact_phone = ?,
                contact_email = ?,
                tax_year_end = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                client.name,
                client.ein,
                client.entity_type.value if client.entity_type else None,
                client.address,
                client.city,
                client.state,
                client.zip_code,
                client.contact_name,
                client.contact_phone,
                client.contact_email,
                client.tax_year_end,
                client.updated_at.isoformat(),
                str(client.id),
            ),
        )
        conn.commit()

    def delete(self, client_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM clients WHERE id = ?", (str(client_id),))
        conn.commit()

    def _row_to_client(self, row: sqlite3.Row) -> Client:
        return Client(
            id=UUID(row["id"]),
            owner_id=row["owner_id"],
            name=row["name"],
            ein=row["ein"],
            entity_type=EntityType(row["entity_type"]) if row["entity_type"] else None,
            address=row["address"],
            city=row["city"],
            state=row["state"],
            zip_code=row["zip_code"],
            contact_name=row["contact_name"],
            contact_phone=row["contact_phone"],
            contact_email=row["contact_email"],
            tax_year_end=row["tax_year_end"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteFilingRepository(FilingRepository):
    """SQLite implementation of FilingRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, filing: Filing) -> None:
        conn = self._db.get_connection()
        columns = [
            "id",
            "client_id",
            "tax_year",
            "dcn",
            "change_type",
            "status",
            "last_saved_step",
            "completion_percentage",
            *PAYLOAD_COLUMNS.values(),
            "created_at",
            "updated_at",
        ]
        placeholders = ", ".join("?" for _ in columns)
        conn.execute(
            f"INSERT INTO filings ({', '.join(columns)}) VALUES ({placeholders})",
            (
                str(filing.id),
                str(filing.client_id),
                filing.tax_year,
                *self._filing_values(filing),
                filing.created_at.isoformat(),
                filing.updated_at.isoformat(),
            ),
        )
        conn.commit()

    def get(self, filing_id: UUID) -> Filing | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM filings WHERE id = ?", (str(filing_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_filing(row)

    def list_by_client(self, client_id: UUID) -> Iterable[Filing]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM filings WHERE client_id = ? ORDER BY updated_at DESC",
            (str(client_id),),
        ).fetchall()
        return [self._row_to_filing(row) for row in rows]

    def list_by_owner(
        self, owner_id: str, status: FilingStatus | None = None
    ) -> Iterable[Filing]:
        conn = self._db.get_connection()
        query = """
            SELECT f.* FROM filings f
            JOIN clients c ON c.id = f.client_id
            WHERE c.owner_id = ?
        """
        params: list[str] = [owner_id]
        if status is not None:
            query += " AND f.status = ?"
            params.append(status.value)
        query += " ORDER BY f.updated_at DESC"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_filing(row) for row in rows]

    def update(self, filing: Filing) -> None:
        conn = self._db.get_connection()
        assignments = ",\n                ".join(
            f"{column} = ?"
            for column in (
                "dcn",
                "change_type",
                "status",
                "last_saved_step",
                "completion_percentage",
                *PAYLOAD_COLUMNS.values(),
                "updated_at",
            )
        )
        conn.execute(
            f"""
            UPDATE filings SET
                {assignments}
            WHERE id = ?
            """,
            (
                *self._filing_values(filing),
                filing.updated_at.isoformat(),
                str(filing.id),
            ),
        )
        conn.commit()

    def delete(self, filing_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM filings WHERE id = ?", (str(filing_id),))
        conn.commit()

    def _filing_values(self, filing: Filing) -> tuple[object, ...]:
        return (
            filing.dcn,
            filing.change_type.value if filing.change_type else None,
            filing.status.value,
            filing.last_saved_step.value if filing.last_saved_step else None,
            filing.completion_percentage,
            *(filing.payloads.get(part) for part in PAYLOAD_COLUMNS),
        )

    def _row_to_filing(self, row: sqlite3.Row) -> Filing:
        payloads = {
            part: row[column]
            for part, column in PAYLOAD_COLUMNS.items()
            if row[column] is not None
        }
        return Filing(
            id=UUID(row["id"]),
            client_id=UUID(row["client_id"]),
            tax_year=row["tax_year"],
            dcn=row["dcn"],
            change_type=ChangeType(row["change_type"]) if row["change_type"] else None,
            status=FilingStatus(row["status"]),
            last_saved_step=(
                FormPart(row["last_saved_step"]) if row["last_saved_step"] else None
            ),
            completion_percentage=row["completion_percentage"],
            payloads=payloads,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteDcnReferenceRepository(DcnReferenceRepository):
    """SQLite implementation of DcnReferenceRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def upsert(self, reference: DcnReference) -> bool:
        conn = self._db.get_connection()
        existing = conn.execute(
            "SELECT id, created_at FROM dcn_references WHERE dcn_number = ?",
            (reference.dcn_number,),
        ).fetchone()
        values = (
            reference.description,
            reference.category.value,
            1 if reference.is_automatic else 0,
            1 if reference.requires_481a else 0,
            reference.spread_period,
            1 if reference.requires_schedule_a else 0,
            1 if reference.requires_schedule_b else 0,
            1 if reference.requires_schedule_c else 0,
            1 if reference.requires_schedule_d else 0,
            1 if reference.requires_schedule_e else 0,
            reference.rev_proc_section,
            reference.rev_proc,
            reference.updated_at.isoformat(),
        )
        if existing is None:
            conn.execute(
                """
                INSERT INTO dcn_references (description, category, is_automatic, requires_481a,
                                            spread_period, requires_schedule_a, requires_schedule_b,
                                            requires_schedule_c, requires_schedule_d,
                                            requires_schedule_e, rev_proc_section, rev_proc,
                                            updated_at, id, dcn_number, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *values,
                    str(reference.id),
                    reference.dcn_number,
                    reference.created_at.isoformat(),
                ),
            )
        else:
            conn.execute(
                """
                UPDATE dcn_references SET
                    description = ?,
                    category = ?,
                    is_automatic = ?,
                    requires_481a = ?,
                    spread_period = ?,
                    requires_schedule_a = ?,
                    requires_schedule_b = ?,
                    requires_schedule_c = ?,
                    requires_schedule_d = ?,
                    requires_schedule_e = ?,
                    rev_proc_section = ?,
                    rev_proc = ?,
                    updated_at = ?
                WHERE dcn_number = ?
                """,
                (*values, reference.dcn_number),
            )
            # Keep the caller's object consistent with the stored row
            reference.id = UUID(existing["id"])
            reference.created_at = datetime.fromisoformat(existing["created_at"])
        conn.commit()
        return existing is None

    def get_by_number(self, dcn_number: str) -> DcnReference | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM dcn_references WHERE dcn_number = ?", (dcn_number,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_reference(row)

    def list_all(self) -> Iterable[DcnReference]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM dcn_references").fetchall()
        return [self._row_to_reference(row) for row in rows]

    def list_by_category(self, category: DcnCategory) -> Iterable[DcnReference]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM dcn_references WHERE category = ?", (category.value,)
        ).fetchall()
        return [self._row_to_reference(row) for row in rows]

    def search(self, query: str) -> Iterable[DcnReference]:
        conn = self._db.get_connection()
        escaped = (
            query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        pattern = f"%{escaped}%"
        rows = conn.execute(
            """
            SELECT * FROM dcn_references
            WHERE lower(dcn_number) LIKE ? ESCAPE '\\'
               OR lower(description) LIKE ? ESCAPE '\\'
            """,
            (pattern, pattern),
        ).fetchall()
        return [self._row_to_reference(row) for row in rows]

    def _row_to_reference(self, row: sqlite3.Row) -> DcnReference:
        return DcnReference(
            id=UUID(row["id"]),
            dcn_number=row["dcn_number"],
            description=row["description"],
            category=DcnCategory(row["category"]),
            is_automatic=bool(row["is_automatic"]),
            requires_481a=bool(row["requires_481a"]),
            spread_period=row["spread_period"],
            requires_schedule_a=bool(row["requires_schedule_a"]),
            requires_schedule_b=bool(row["requires_schedule_b"]),
            requires_schedule_c=bool(row["requires_schedule_c"]),
            requires_schedule_d=bool(row["requires_schedule_d"]),
            requires_schedule_e=bool(row["requires_schedule_e"]),
            rev_proc_section=row["rev_proc_section"],
            rev_proc=row["rev_proc"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
