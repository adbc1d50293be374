"""Filing workflow: the calling layer around validation, DCNs and the calculator.

Every operation takes the acting ``owner_id`` explicitly. Records owned by
someone else are reported as not found, so callers cannot probe for them.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any
from uuid import UUID

from form3115_preparer.domain.entities import Client, Filing
from form3115_preparer.domain.payloads import (
    PartIIPayload,
    PartIVPayload,
    PartPayload,
    load_stored_part,
    parse_part,
)
from form3115_preparer.domain.value_objects import (
    ChangeType,
    EntityType,
    FilingStatus,
    FormPart,
)
from form3115_preparer.exceptions import (
    ClientNotFoundError,
    FilingNotFoundError,
    InvalidFormPartError,
    InvalidStatusTransitionError,
    PartValidationError,
)
from form3115_preparer.logging_config import filing_context, get_logger
from form3115_preparer.repositories.interfaces import ClientRepository, FilingRepository
from form3115_preparer.services.adjustment import (
    apply_adjustment,
    calculate_481a_adjustment,
)
from form3115_preparer.services.dcn import DcnResolver, FilingRequirements
from form3115_preparer.services.validation import (
    ValidationResult,
    effective_requires_481a,
    format_ein,
    validate_filing,
    validate_part,
    validate_tax_year,
)

logger = get_logger(__name__)

RECENT_FILINGS_LIMIT = 5

# Explicit status moves; saving a part always returns a filing to in_progress
STATUS_TRANSITIONS: dict[FilingStatus, frozenset[FilingStatus]] = {
    FilingStatus.DRAFT: frozenset({FilingStatus.IN_PROGRESS, FilingStatus.READY}),
    FilingStatus.IN_PROGRESS: frozenset({FilingStatus.READY}),
    FilingStatus.READY: frozenset({FilingStatus.IN_PROGRESS, FilingStatus.COMPLETED}),
    FilingStatus.COMPLETED: frozenset({FilingStatus.IN_PROGRESS}),
}

_CLIENT_FIELDS = frozenset(
    f.name
    for f in fields(Client)
    if f.name not in {"id", "owner_id", "created_at", "updated_at"}
)


def coerce_part(part: FormPart | str) -> FormPart:
    if isinstance(part, FormPart):
        return part
    try:
        return FormPart(part)
    except ValueError:
        raise InvalidFormPartError(str(part)) from None


@dataclass
class SavedPart:
    filing: Filing
    part: FormPart
    warnings: dict[str, str] = field(default_factory=dict)


@dataclass
class DashboardStats:
    total_clients: int
    in_progress_filings: int
    completed_filings: int
    total_filings: int
    recent_filings: list[Filing] = field(default_factory=list)


class FilingService:
    def __init__(
        self,
        client_repo: ClientRepository,
        filing_repo: FilingRepository,
        resolver: DcnResolver,
    ) -> None:
        self._client_repo = client_repo
        self._filing_repo = filing_repo
        self._resolver = resolver

    # =========================================================================
    # Clients
    # =========================================================================

    def create_client(self, owner_id: str, name: str, **details: Any) -> Client:
        if not name or not name.strip():
            raise ValueError("Client name is required")
        client = Client(name=name.strip(), owner_id=owner_id)
        self._apply_client_details(client, details)
        self._client_repo.add(client)
        logger.info("client_created", client_id=str(client.id), owner_id=owner_id)
        return client

    def get_client(self, owner_id: str, client_id: UUID) -> Client:
        client = self._client_repo.get(client_id)
        if client is None or client.owner_id != owner_id:
            raise ClientNotFoundError(client_id)
        return client

    def list_clients(self, owner_id: str) -> list[Client]:
        return list(self._client_repo.list_by_owner(owner_id))

    def update_client(
        self, owner_id: str, client_id: UUID, **changes: Any
    ) -> Client:
        client = self.get_client(owner_id, client_id)
        if "name" in changes:
            name = changes["name"]
            if not name or not str(name).strip():
                raise ValueError("Client name is required")
            changes["name"] = str(name).strip()
        self._apply_client_details(client, changes)
        client.touch()
        self._client_repo.update(client)
        return client

    def delete_client(self, owner_id: str, client_id: UUID) -> None:
        client = self.get_client(owner_id, client_id)
        self._client_repo.delete(client.id)
        logger.info("client_deleted", client_id=str(client.id), owner_id=owner_id)

    def _apply_client_details(self, client: Client, details: Mapping[str, Any]) -> None:
        unknown = set(details) - _CLIENT_FIELDS
        if unknown:
            raise ValueError(f"Unknown client fields: {', '.join(sorted(unknown))}")
        for name, value in details.items():
            if name == "entity_type" and value is not None:
                value = EntityType(value)
            elif name == "ein" and value:
                value = format_ein(str(value).strip())
            setattr(client, name, value)

    # =========================================================================
    # Filings
    # =========================================================================

    def create_filing(self, owner_id: str, client_id: UUID, tax_year: int) -> Filing:
        client = self.get_client(owner_id, client_id)
        if not validate_tax_year(tax_year):
            raise ValueError(f"Tax year out of range: {tax_year}")
        filing = Filing(client_id=client.id, tax_year=tax_year)
        self._filing_repo.add(filing)
        logger.info(
            "filing_created",
            filing_id=str(filing.id),
            client_id=str(client.id),
            tax_year=tax_year,
        )
        return filing

    def get_filing(self, owner_id: str, filing_id: UUID) -> Filing:
        filing, _ = self.get_filing_with_client(owner_id, filing_id)
        return filing

    def get_filing_with_client(
        self, owner_id: str, filing_id: UUID
    ) -> tuple[Filing, Client]:
        filing = self._filing_repo.get(filing_id)
        if filing is None:
            raise FilingNotFoundError(filing_id)
        client = self._client_repo.get(filing.client_id)
        if client is None or client.owner_id != owner_id:
            raise FilingNotFoundError(filing_id)
        return filing, client

    def list_filings(
        self,
        owner_id: str,
        client_id: UUID | None = None,
        status: FilingStatus | None = None,
    ) -> list[Filing]:
        if client_id is None:
            return list(self._filing_repo.list_by_owner(owner_id, status))
        client = self.get_client(owner_id, client_id)
        filings = self._filing_repo.list_by_client(client.id)
        return [f for f in filings if status is None or f.status == status]

    def delete_filing(self, owner_id: str, filing_id: UUID) -> None:
        filing = self.get_filing(owner_id, filing_id)
        self._filing_repo.delete(filing.id)
        logger.info("filing_deleted", filing_id=str(filing.id))

    def set_status(
        self, owner_id: str, filing_id: UUID, status: FilingStatus
    ) -> Filing:
        """Move a filing to ``status``.

        Marking a filing ready requires the whole filing to pass
        ``validate_filing``.

        Raises:
            InvalidStatusTransitionError: If the move is not allowed.
            PartValidationError: If the filing is not complete enough to be ready.
        """
        filing = self.get_filing(owner_id, filing_id)
        if status == filing.status:
            return filing
        if status not in STATUS_TRANSITIONS[filing.status]:
            raise InvalidStatusTransitionError(filing.status.value, status.value)
        if status == FilingStatus.READY:
            result = self._validate_filing(filing)
            if not result.is_valid:
                raise PartValidationError("filing", result)

        previous = filing.status
        filing.set_status(status)
        self._filing_repo.update(filing)
        logger.info(
            "filing_status_changed",
            filing_id=str(filing.id),
            previous=previous.value,
            status=status.value,
        )
        return filing

    def requirements_for(self, filing: Filing) -> FilingRequirements:
        return self._resolver.resolve_requirements(filing.dcn)

    def stored_parts(self, filing: Filing) -> dict[FormPart, PartPayload]:
        """Every saved part of the filing, read leniently."""
        return {
            part: load_stored_part(part, text)
            for part, text in filing.payloads.items()
            if text
        }

    def validate_filing(self, owner_id: str, filing_id: UUID) -> ValidationResult:
        return self._validate_filing(self.get_filing(owner_id, filing_id))

    def _validate_filing(self, filing: Filing) -> ValidationResult:
        requirements = self.requirements_for(filing)
        parts = self.stored_parts(filing)
        part_iv = parts.get(FormPart.PART_IV)
        requires_481a = (
            effective_requires_481a(part_iv, requirements.requires_481a)
            if part_iv is not None
            else requirements.requires_481a
        )
        return validate_filing(
            parts,
            requires_481a=requires_481a,
            required_schedules=requirements.required_schedules,
        )

    # =========================================================================
    # Part saves
    # =========================================================================

    def save_part(
        self,
        owner_id: str,
        filing_id: UUID,
        part: FormPart | str,
        data: Mapping[str, Any],
    ) -> SavedPart:
        """Validate and persist one part of a filing.

        Part II is annotated with what its DCN requires and Part IV is
        completed with the 481(a) adjustment before storage.

        Raises:
            PartValidationError: If the data has blocking errors. Nothing is
                written in that case.
        """
        part = coerce_part(part)
        with filing_context(filing_id, part=part.value):
            return self._save_part(owner_id, filing_id, part, data)

    def _save_part(
        self,
        owner_id: str,
        filing_id: UUID,
        part: FormPart,
        data: Mapping[str, Any],
    ) -> SavedPart:
        filing = self.get_filing(owner_id, filing_id)
        requirements = self.requirements_for(filing)

        requires_481a = False
        if part is FormPart.PART_IV:
            requires_481a = effective_requires_481a(data, requirements.requires_481a)

        result = validate_part(part, data, requires_481a=requires_481a)
        if not result.is_valid:
            logger.info(
                "part_save_rejected",
                filing_id=str(filing.id),
                part=part.value,
                fields=sorted(result.errors),
            )
            raise PartValidationError(part.value, result)

        payload = parse_part(part, data)
        if isinstance(payload, PartIIPayload):
            payload = self._annotate_change(filing, payload)
        elif isinstance(payload, PartIVPayload):
            payload = self._complete_adjustment(
                filing, payload, requirements, requires_481a
            )

        filing.record_part_save(part, payload.to_json())
        self._filing_repo.update(filing)
        logger.info(
            "part_saved",
            filing_id=str(filing.id),
            part=part.value,
            completion=filing.completion_percentage,
            warnings=len(result.warnings),
        )
        return SavedPart(filing=filing, part=part, warnings=result.warnings)

    def _annotate_change(self, filing: Filing, payload: PartIIPayload) -> PartIIPayload:
        requirements = self._resolver.resolve_requirements(payload.dcn)
        if requirements.found:
            is_automatic: bool | None = requirements.is_automatic
        elif payload.change_type is not None:
            is_automatic = payload.change_type == ChangeType.AUTOMATIC.value
        else:
            is_automatic = None

        update: dict[str, Any] = {"is_automatic_change": is_automatic}
        if payload.change_type is None and is_automatic is not None:
            update["change_type"] = (
                ChangeType.AUTOMATIC.value
                if is_automatic
                else ChangeType.NON_AUTOMATIC.value
            )
        annotated = payload.model_copy(update=update)

        filing.dcn = annotated.dcn
        if annotated.change_type is not None:
            filing.change_type = ChangeType(annotated.change_type)
        return annotated

    def _complete_adjustment(
        self,
        filing: Filing,
        payload: PartIVPayload,
        requirements: FilingRequirements,
        requires_481a: bool,
    ) -> PartIVPayload:
        update: dict[str, Any] = {}
        if payload.year_of_change is None:
            update["year_of_change"] = filing.tax_year
        if payload.requires_481a is None:
            update["requires_481a"] = "yes" if requires_481a else "no"
        if payload.spread_period is None:
            update["spread_period"] = 4 if requirements.spread_period == 4 else 1
        completed = payload.model_copy(update=update)

        untouched = (
            completed.present_method_income is None
            and completed.proposed_method_income is None
        )
        if not requires_481a and untouched:
            return completed

        adjustment = calculate_481a_adjustment(
            completed.present_method_income,
            completed.proposed_method_income,
            completed.spread_period,
        )
        return apply_adjustment(completed, adjustment)

    # =========================================================================
    # Dashboard
    # =========================================================================

    def dashboard(self, owner_id: str) -> DashboardStats:
        clients = self.list_clients(owner_id)
        filings = list(self._filing_repo.list_by_owner(owner_id))
        return DashboardStats(
            total_clients=len(clients),
            in_progress_filings=sum(
                1 for f in filings if f.status == FilingStatus.IN_PROGRESS
            ),
            completed_filings=sum(
                1 for f in filings if f.status == FilingStatus.COMPLETED
            ),
            total_filings=len(filings),
            recent_filings=filings[:RECENT_FILINGS_LIMIT],
        )
