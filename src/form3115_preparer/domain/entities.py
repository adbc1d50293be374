from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from form3115_preparer.domain.value_objects import (
    SPREAD_PERIODS,
    ChangeType,
    DcnCategory,
    EntityType,
    FilingStatus,
    FormPart,
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


# Fixed step ladder; schedules do not move the percentage.
COMPLETION_LADDER: dict[FormPart, int] = {
    FormPart.PART_I: 25,
    FormPart.PART_II: 50,
    FormPart.PART_III: 75,
    FormPart.PART_IV: 100,
}


@dataclass
class Client:
    name: str
    owner_id: str
    id: UUID = field(default_factory=uuid4)
    ein: str | None = None
    entity_type: EntityType | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    contact_name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    tax_year_end: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def touch(self) -> None:
        self.updated_at = _utc_now()


@dataclass
class DcnReference:
    """One designated change number from the revenue procedure list."""

    dcn_number: str
    description: str
    category: DcnCategory
    is_automatic: bool = True
    requires_481a: bool = False
    spread_period: int | None = None
    requires_schedule_a: bool = False
    requires_schedule_b: bool = False
    requires_schedule_c: bool = False
    requires_schedule_d: bool = False
    requires_schedule_e: bool = False
    rev_proc_section: str | None = None
    rev_proc: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.spread_period is not None and self.spread_period not in SPREAD_PERIODS:
            raise ValueError(
                f"DCN {self.dcn_number}: spread period must be 1 or 4, "
                f"got {self.spread_period}"
            )

    @property
    def required_schedules(self) -> list[FormPart]:
        flags = (
            self.requires_schedule_a,
            self.requires_schedule_b,
            self.requires_schedule_c,
            self.requires_schedule_d,
            self.requires_schedule_e,
        )
        return [
            schedule
            for schedule, required in zip(FormPart.schedules(), flags, strict=True)
            if required
        ]


@dataclass
class Filing:
    client_id: UUID
    tax_year: int
    id: UUID = field(default_factory=uuid4)
    dcn: str | None = None
    change_type: ChangeType | None = None
    status: FilingStatus = FilingStatus.DRAFT
    last_saved_step: FormPart | None = None
    completion_percentage: int = 0
    # Serialized JSON text per part, as persisted
    payloads: dict[FormPart, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def payload_text(self, part: FormPart) -> str | None:
        return self.payloads.get(part)

    def record_part_save(self, part: FormPart, payload_json: str) -> None:
        """Store a part's payload and advance the workflow markers."""
        self.payloads[part] = payload_json
        self.status = FilingStatus.IN_PROGRESS
        self.last_saved_step = part
        if part in COMPLETION_LADDER:
            self.completion_percentage = COMPLETION_LADDER[part]
        self.updated_at = _utc_now()

    def set_status(self, status: FilingStatus) -> None:
        self.status = status
        self.updated_at = _utc_now()
