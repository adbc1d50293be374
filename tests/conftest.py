from collections.abc import Callable, Iterable
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from pypdf import PdfReader, PdfWriter
from pypdf.generic import ArrayObject, NameObject, TextStringObject
from reportlab.pdfgen import canvas

from form3115_preparer.config import DEFAULT_FIELD_MAP_PATH
from form3115_preparer.domain.entities import Client, Filing
from form3115_preparer.domain.value_objects import EntityType
from form3115_preparer.reference.dcn_seed import seed_dcn_references
from form3115_preparer.repositories.sqlite import (
    SQLiteClientRepository,
    SQLiteDatabase,
    SQLiteDcnReferenceRepository,
    SQLiteFilingRepository,
)
from form3115_preparer.services.dcn import DcnResolver
from form3115_preparer.services.filings import FilingService
from form3115_preparer.services.pdf_generator import FieldMap, PdfGenerator


TemplateBuilder = Callable[..., Path]


# =============================================================================
# Database and services
# =============================================================================


@pytest.fixture
def db() -> SQLiteDatabase:
    database = SQLiteDatabase(":memory:", check_same_thread=False)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def seeded_db(db: SQLiteDatabase) -> SQLiteDatabase:
    seed_dcn_references(SQLiteDcnReferenceRepository(db))
    return db


@pytest.fixture
def client_repo(seeded_db: SQLiteDatabase) -> SQLiteClientRepository:
    return SQLiteClientRepository(seeded_db)


@pytest.fixture
def filing_repo(seeded_db: SQLiteDatabase) -> SQLiteFilingRepository:
    return SQLiteFilingRepository(seeded_db)


@pytest.fixture
def dcn_repo(seeded_db: SQLiteDatabase) -> SQLiteDcnReferenceRepository:
    return SQLiteDcnReferenceRepository(seeded_db)


@pytest.fixture
def resolver(dcn_repo: SQLiteDcnReferenceRepository) -> DcnResolver:
    return DcnResolver(dcn_repo)


@pytest.fixture
def filing_service(
    client_repo: SQLiteClientRepository,
    filing_repo: SQLiteFilingRepository,
    resolver: DcnResolver,
) -> FilingService:
    return FilingService(
        client_repo=client_repo, filing_repo=filing_repo, resolver=resolver
    )


# =============================================================================
# Sample records
# =============================================================================


@pytest.fixture
def sample_client() -> Client:
    return Client(
        name="Acme Widgets, Inc.",
        owner_id="preparer-1",
        ein="12-3456789",
        entity_type=EntityType.C_CORP,
        address="100 Main Street",
        city="Springfield",
        state="IL",
        zip_code="62701",
        contact_name="Pat Jones",
        contact_phone="(217) 555-0100",
        tax_year_end="12/31",
    )


@pytest.fixture
def sample_filing(sample_client: Client) -> Filing:
    return Filing(client_id=sample_client.id, tax_year=2025)


@pytest.fixture
def part_i_data() -> dict[str, Any]:
    return {
        "filerName": "Acme Widgets, Inc.",
        "filerEin": "12-3456789",
        "filerAddress": "100 Main Street",
        "filerCity": "Springfield",
        "filerState": "IL",
        "filerZip": "62701",
        "contactName": "Pat Jones",
        "contactPhone": "(217) 555-0100",
        "principalBusinessCode": "332510",
    }


@pytest.fixture
def part_ii_data() -> dict[str, Any]:
    return {
        "dcn": "7",
        "changeDescription": (
            "Change from an impermissible to a permissible method of "
            "depreciation for shop equipment placed in service in 2021."
        ),
        "presentMethod": "Straight line over 10 years",
        "proposedMethod": "MACRS GDS over 7 years",
        "yearOfChangeReason": "First year the error was identified",
    }


@pytest.fixture
def schedule_a_data() -> dict[str, Any]:
    return {
        "currentOverallMethod": "cash",
        "proposedOverallMethod": "accrual",
        "grossReceiptsTest": "yes",
        "averageGrossReceipts": "12000000",
        "incomeAccrued": "45000",
    }


# =============================================================================
# PDF template
# =============================================================================


@pytest.fixture
def field_map() -> FieldMap:
    return FieldMap.load(DEFAULT_FIELD_MAP_PATH)


def _text_and_checkbox_fields(field_map: FieldMap) -> tuple[list[str], list[str]]:
    text_fields: list[str] = []
    checkbox_fields: list[str] = []
    for bindings in field_map.parts.values():
        for binding in bindings:
            if binding.is_checkbox:
                checkbox_fields.extend(binding.checkboxes.values())
            elif binding.target:
                text_fields.append(binding.target)
    return text_fields, checkbox_fields


def build_template(
    path: Path,
    text_fields: Iterable[str],
    checkbox_fields: Iterable[str] = (),
    with_xfa: bool = True,
) -> Path:
    """Write a fillable AcroForm PDF with the given field names."""
    pdf = canvas.Canvas(str(path))
    form = pdf.acroForm
    y = 780

    def next_row() -> int:
        nonlocal y
        if y < 60:
            pdf.showPage()
            y = 780
        row = y
        y -= 20
        return row

    for name in text_fields:
        form.textfield(
            name=name, x=72, y=next_row(), width=300, height=14, forceBorder=True
        )
    for name in checkbox_fields:
        form.checkbox(name=name, x=72, y=next_row(), size=12, buttonStyle="check")
    pdf.showPage()
    pdf.save()

    if with_xfa:
        writer = PdfWriter(clone_from=PdfReader(str(path)))
        writer.root_object["/AcroForm"][NameObject("/XFA")] = ArrayObject(
            [TextStringObject("template"), TextStringObject("<template/>")]
        )
        with path.open("wb") as handle:
            writer.write(handle)
    return path


@pytest.fixture
def template_builder(tmp_path: Path) -> TemplateBuilder:
    def _build(
        name: str = "f3115.pdf",
        text_fields: Iterable[str] = (),
        checkbox_fields: Iterable[str] = (),
        with_xfa: bool = True,
    ) -> Path:
        return build_template(tmp_path / name, text_fields, checkbox_fields, with_xfa)

    return _build


@pytest.fixture
def template_path(template_builder: TemplateBuilder, field_map: FieldMap) -> Path:
    """A template carrying every field the packaged field map targets."""
    text_fields, checkbox_fields = _text_and_checkbox_fields(field_map)
    return template_builder(text_fields=text_fields, checkbox_fields=checkbox_fields)


@pytest.fixture
def pdf_generator(template_path: Path, field_map: FieldMap) -> PdfGenerator:
    return PdfGenerator(template_path, field_map, attach_statement=False)


@pytest.fixture
def read_fields() -> Callable[[bytes], dict[str, Any]]:
    """Field name -> /V value of a generated PDF."""

    def _read(data: bytes) -> dict[str, Any]:
        fields = PdfReader(BytesIO(data)).get_fields() or {}
        return {name: field.get("/V") for name, field in fields.items()}

    return _read
