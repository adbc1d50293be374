"""API routes for Form 3115 Preparer."""

from io import BytesIO
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from form3115_preparer import __version__
from form3115_preparer.api.schemas import (
    AdjustmentRequest,
    AdjustmentResponse,
    ClientCreate,
    ClientResponse,
    ClientUpdate,
    DashboardResponse,
    DcnResponse,
    FilingCreate,
    FilingResponse,
    FilingStatusUpdate,
    FilingSummaryResponse,
    HealthResponse,
    PartSaveResponse,
    RequirementsResponse,
    ValidationResponse,
)
from form3115_preparer.config import get_settings
from form3115_preparer.container import get_pdf_generator
from form3115_preparer.domain.entities import Client, DcnReference, Filing
from form3115_preparer.domain.payloads import load_stored_part
from form3115_preparer.domain.value_objects import DcnCategory, FilingStatus
from form3115_preparer.exceptions import PdfError
from form3115_preparer.logging_config import get_logger
from form3115_preparer.repositories.sqlite import (
    SQLiteClientRepository,
    SQLiteDatabase,
    SQLiteDcnReferenceRepository,
    SQLiteFilingRepository,
)
from form3115_preparer.services.adjustment import calculate_481a_adjustment
from form3115_preparer.services.dcn import DEFAULT_SEARCH_LIMIT, DcnResolver
from form3115_preparer.services.filings import FilingService, coerce_part
from form3115_preparer.services.pdf_generator import PdfGenerator, pdf_filename
from form3115_preparer.services.validation import ValidationResult, validate_part

logger = get_logger(__name__)

# Create routers
health_router = APIRouter(tags=["health"])
dcn_router = APIRouter(prefix="/dcns", tags=["dcns"])
calculation_router = APIRouter(prefix="/calculations", tags=["calculations"])
validation_router = APIRouter(prefix="/validation", tags=["validation"])
client_router = APIRouter(prefix="/clients", tags=["clients"])
filing_router = APIRouter(prefix="/filings", tags=["filings"])
dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])


# Dependency injection functions
def get_owner_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Identity of the caller, falling back to the configured local owner."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return get_settings().default_owner_id


def get_dcn_resolver(db: SQLiteDatabase) -> DcnResolver:
    return DcnResolver(SQLiteDcnReferenceRepository(db))


def get_filing_service(db: SQLiteDatabase) -> FilingService:
    return FilingService(
        client_repo=SQLiteClientRepository(db),
        filing_repo=SQLiteFilingRepository(db),
        resolver=get_dcn_resolver(db),
    )


OwnerId = Annotated[str, Depends(get_owner_id)]


# Helper functions
def _client_to_response(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id,
        name=client.name,
        ein=client.ein,
        entity_type=client.entity_type.value if client.entity_type else None,
        address=client.address,
        city=client.city,
        state=client.state,
        zip_code=client.zip_code,
        contact_name=client.contact_name,
        contact_phone=client.contact_phone,
        contact_email=client.contact_email,
        tax_year_end=client.tax_year_end,
        created_at=client.created_at,
        updated_at=client.updated_at,
    )


def _filing_to_response(filing: Filing) -> FilingResponse:
    return FilingResponse(
        id=filing.id,
        client_id=filing.client_id,
        tax_year=filing.tax_year,
        dcn=filing.dcn,
        change_type=filing.change_type.value if filing.change_type else None,
        status=filing.status.value,
        last_saved_step=(
            filing.last_saved_step.value if filing.last_saved_step else None
        ),
        completion_percentage=filing.completion_percentage,
        parts={
            part.value: load_stored_part(part, text).to_document()
            for part, text in filing.payloads.items()
        },
        created_at=filing.created_at,
        updated_at=filing.updated_at,
    )


def _filing_to_summary(filing: Filing) -> FilingSummaryResponse:
    return FilingSummaryResponse(
        id=filing.id,
        client_id=filing.client_id,
        tax_year=filing.tax_year,
        dcn=filing.dcn,
        status=filing.status.value,
        completion_percentage=filing.completion_percentage,
        updated_at=filing.updated_at,
    )


def _dcn_to_response(reference: DcnReference) -> DcnResponse:
    return DcnResponse(
        dcn_number=reference.dcn_number,
        description=reference.description,
        category=reference.category.value,
        is_automatic=reference.is_automatic,
        requires_481a=reference.requires_481a,
        spread_period=reference.spread_period,
        requires_schedule_a=reference.requires_schedule_a,
        requires_schedule_b=reference.requires_schedule_b,
        requires_schedule_c=reference.requires_schedule_c,
        requires_schedule_d=reference.requires_schedule_d,
        requires_schedule_e=reference.requires_schedule_e,
        rev_proc_section=reference.rev_proc_section,
        rev_proc=reference.rev_proc,
    )


def _validation_to_response(result: ValidationResult) -> ValidationResponse:
    return ValidationResponse(
        is_valid=result.is_valid,
        errors=result.errors,
        warnings=result.warnings,
    )


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


# DCN endpoints
@dcn_router.get("", response_model=list[DcnResponse])
def search_dcns(
    db: Annotated[SQLiteDatabase, Depends()],
    q: str | None = Query(default=None, description="Number or description text"),
    limit: int = Query(default=DEFAULT_SEARCH_LIMIT, ge=1, le=100),
) -> list[DcnResponse]:
    """Search DCNs, or list every DCN when no query is given."""
    resolver = get_dcn_resolver(db)
    references = resolver.search(q, limit) if q is not None else resolver.list_all()
    return [_dcn_to_response(r) for r in references]


@dcn_router.get("/category/{category}", response_model=list[DcnResponse])
def list_dcns_by_category(
    category: DcnCategory,
    db: Annotated[SQLiteDatabase, Depends()],
) -> list[DcnResponse]:
    resolver = get_dcn_resolver(db)
    return [_dcn_to_response(r) for r in resolver.list_by_category(category)]


@dcn_router.get("/{dcn_number}", response_model=DcnResponse)
def get_dcn(
    dcn_number: str,
    db: Annotated[SQLiteDatabase, Depends()],
) -> DcnResponse:
    reference = get_dcn_resolver(db).lookup(dcn_number)
    if reference is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"DCN {dcn_number} not found",
        )
    return _dcn_to_response(reference)


@dcn_router.get("/{dcn_number}/requirements", response_model=RequirementsResponse)
def get_dcn_requirements(
    dcn_number: str,
    db: Annotated[SQLiteDatabase, Depends()],
) -> RequirementsResponse:
    """Sections a filing needs for this DCN; unknown DCNs require nothing extra."""
    requirements = get_dcn_resolver(db).resolve_requirements(dcn_number)
    return RequirementsResponse(
        dcn_number=requirements.dcn_number,
        found=requirements.found,
        is_automatic=requirements.is_automatic,
        requires_481a=requirements.requires_481a,
        spread_period=requirements.spread_period,
        required_schedules=[s.value for s in requirements.required_schedules],
        required_parts=[p.value for p in requirements.required_parts],
        reference=(
            _dcn_to_response(requirements.reference)
            if requirements.reference
            else None
        ),
    )


# Calculation endpoints
@calculation_router.post("/481a", response_model=AdjustmentResponse)
def calculate_adjustment(payload: AdjustmentRequest) -> AdjustmentResponse:
    adjustment = calculate_481a_adjustment(
        payload.present_method_income,
        payload.proposed_method_income,
        payload.spread_period,
    )
    return AdjustmentResponse(
        present_method_income=str(adjustment.present_method_income),
        proposed_method_income=str(adjustment.proposed_method_income),
        adjustment_amount=str(adjustment.adjustment_amount),
        adjustment_direction=adjustment.direction.value,
        spread_period=adjustment.spread_period,
        yearly_amounts=[str(amount) for amount in adjustment.recognized_amounts],
        is_large=adjustment.is_large,
    )


# Validation endpoints
@validation_router.post("/{part}", response_model=ValidationResponse)
def validate_form_part(
    part: str,
    data: Annotated[dict[str, Any], Body()],
    requires_481a: bool = Query(default=False),
) -> ValidationResponse:
    """Validate part data without saving it."""
    result = validate_part(coerce_part(part), data, requires_481a=requires_481a)
    return _validation_to_response(result)


# Client endpoints
@client_router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_client(
    payload: ClientCreate,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> ClientResponse:
    service = get_filing_service(db)
    details = payload.model_dump(exclude={"name"})
    client = service.create_client(owner_id, payload.name, **details)
    return _client_to_response(client)


@client_router.get("", response_model=list[ClientResponse])
def list_clients(
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> list[ClientResponse]:
    clients = get_filing_service(db).list_clients(owner_id)
    return [_client_to_response(c) for c in clients]


@client_router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> ClientResponse:
    return _client_to_response(get_filing_service(db).get_client(owner_id, client_id))


@client_router.patch("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: UUID,
    payload: ClientUpdate,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> ClientResponse:
    service = get_filing_service(db)
    changes = payload.model_dump(exclude_unset=True)
    try:
        client = service.update_client(owner_id, client_id, **changes)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return _client_to_response(client)


@client_router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> None:
    """Delete a client and every filing it owns."""
    get_filing_service(db).delete_client(owner_id, client_id)


@client_router.get("/{client_id}/filings", response_model=list[FilingSummaryResponse])
def list_client_filings(
    client_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> list[FilingSummaryResponse]:
    filings = get_filing_service(db).list_filings(owner_id, client_id=client_id)
    return [_filing_to_summary(f) for f in filings]


# Filing endpoints
@filing_router.post(
    "",
    response_model=FilingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_filing(
    payload: FilingCreate,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> FilingResponse:
    service = get_filing_service(db)
    try:
        filing = service.create_filing(owner_id, payload.client_id, payload.tax_year)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return _filing_to_response(filing)


@filing_router.get("", response_model=list[FilingSummaryResponse])
def list_filings(
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
    filing_status: FilingStatus | None = Query(default=None, alias="status"),
) -> list[FilingSummaryResponse]:
    """List filings, most recently updated first."""
    filings = get_filing_service(db).list_filings(owner_id, status=filing_status)
    return [_filing_to_summary(f) for f in filings]


@filing_router.get("/{filing_id}", response_model=FilingResponse)
def get_filing(
    filing_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> FilingResponse:
    return _filing_to_response(get_filing_service(db).get_filing(owner_id, filing_id))


@filing_router.delete("/{filing_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_filing(
    filing_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> None:
    get_filing_service(db).delete_filing(owner_id, filing_id)


@filing_router.put("/{filing_id}/parts/{part}", response_model=PartSaveResponse)
def save_filing_part(
    filing_id: UUID,
    part: str,
    data: Annotated[dict[str, Any], Body()],
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> PartSaveResponse:
    """Validate and save one part; blocking errors are returned with status 422."""
    saved = get_filing_service(db).save_part(owner_id, filing_id, part, data)
    return PartSaveResponse(
        filing=_filing_to_response(saved.filing),
        part=saved.part.value,
        warnings=saved.warnings,
    )


@filing_router.patch("/{filing_id}/status", response_model=FilingResponse)
def update_filing_status(
    filing_id: UUID,
    payload: FilingStatusUpdate,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> FilingResponse:
    filing = get_filing_service(db).set_status(
        owner_id, filing_id, FilingStatus(payload.status)
    )
    return _filing_to_response(filing)


@filing_router.get("/{filing_id}/validation", response_model=ValidationResponse)
def validate_filing(
    filing_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> ValidationResponse:
    """Check the whole filing for completeness."""
    result = get_filing_service(db).validate_filing(owner_id, filing_id)
    return _validation_to_response(result)


@filing_router.get("/{filing_id}/pdf")
def download_filing_pdf(
    filing_id: UUID,
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
    generator: Annotated[PdfGenerator, Depends(get_pdf_generator)],
) -> StreamingResponse:
    """Stream the filled Form 3115 as a download."""
    filing, client = get_filing_service(db).get_filing_with_client(owner_id, filing_id)
    try:
        data = generator.generate(filing, client)
    except PdfError as e:
        logger.error(
            "pdf_generation_failed",
            filing_id=str(filing_id),
            error_code=e.error_code,
            error=e.message,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="PDF generation failed",
        ) from e

    filename = pdf_filename(client.name, filing.tax_year)
    return StreamingResponse(
        BytesIO(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Dashboard endpoints
@dashboard_router.get("", response_model=DashboardResponse)
def get_dashboard(
    db: Annotated[SQLiteDatabase, Depends()],
    owner_id: OwnerId,
) -> DashboardResponse:
    stats = get_filing_service(db).dashboard(owner_id)
    return DashboardResponse(
        total_clients=stats.total_clients,
        in_progress_filings=stats.in_progress_filings,
        completed_filings=stats.completed_filings,
        total_filings=stats.total_filings,
        recent_filings=[_filing_to_summary(f) for f in stats.recent_filings],
    )
