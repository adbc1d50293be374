"""Typed payloads for each Form 3115 part and schedule.

Every part is stored as a JSON document whose keys are the camelCase field
names used on the preparer's forms (``filerEin``, ``section263AMethod``).
The models below give those documents an explicit shape: enumerated answers
are literals, money is Decimal, and blank form inputs become None.

The ``part`` tag makes the models a discriminated union, so a document
tagged with its part can be parsed without knowing the model up front.
"""

import json
from collections.abc import Mapping
from decimal import Decimal
from functools import lru_cache
from types import UnionType
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from form3115_preparer.domain.value_objects import FormPart
from form3115_preparer.logging_config import get_logger

logger = get_logger(__name__)

YesNo = Literal["yes", "no"]
YesNoNa = Literal["yes", "no", "na"]
OverallMethod = Literal["cash", "accrual", "hybrid"]
InventoryMethod = Literal["fifo", "lifo", "average", "specific", "retail", "other"]
ValuationMethod = Literal["cost", "lcm", "lcnrv", "other"]
DepreciationMethod = Literal[
    "macrs-gds", "macrs-ads", "sl", "db-200", "db-150", "units", "other"
]
Convention = Literal["half-year", "mid-quarter", "mid-month"]
ContractMethod = Literal["pcm", "ccm", "pcm-ccm", "exempt-ccm", "other"]
SecuritiesMethod = Literal["realization", "mtm", "lcm", "other"]


def _is_text_choice(annotation: Any) -> bool:
    origin = get_origin(annotation)
    if origin is Union or origin is UnionType:
        return any(_is_text_choice(arg) for arg in get_args(annotation))
    if origin is Literal:
        return all(isinstance(arg, str) for arg in get_args(annotation))
    return False


@lru_cache
def _choice_keys(model: type[BaseModel]) -> frozenset[str]:
    """Names and aliases of the fields whose answers are text literals."""
    keys: set[str] = set()
    for name, info in model.model_fields.items():
        if name != "part" and _is_text_choice(info.annotation):
            keys.add(name)
            if info.alias:
                keys.add(info.alias)
    return frozenset(keys)


class PartPayload(BaseModel):
    """Common configuration for stored part documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_answers(cls, data: Any) -> Any:
        """Turn blank inputs into None and lowercase enumerated answers.

        The ``part`` tag is left alone; it selects the model.
        """
        if not isinstance(data, Mapping):
            return data
        choices = _choice_keys(cls)
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if key != "part" and isinstance(value, str):
                value = value.strip()
                if not value:
                    value = None
                elif key in choices:
                    value = value.lower()
            normalized[key] = value
        return normalized

    def to_document(self) -> dict[str, Any]:
        """Dump to the stored camelCase JSON shape, omitting unset answers."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"part"}
        )

    def to_json(self) -> str:
        return json.dumps(self.to_document(), sort_keys=True)


class PartIPayload(PartPayload):
    part: Literal[FormPart.PART_I] = FormPart.PART_I

    filer_name: str | None = None
    filer_ein: str | None = None
    filer_address: str | None = None
    filer_city: str | None = None
    filer_state: str | None = None
    filer_zip: str | None = None
    contact_name: str | None = None
    contact_phone: str | None = None
    tax_year_begin: str | None = None
    tax_year_end: str | None = None
    principal_business_activity: str | None = None
    principal_business_code: str | None = None

    @field_validator("filer_state", mode="after")
    @classmethod
    def upper_state(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class PartIIPayload(PartPayload):
    part: Literal[FormPart.PART_II] = FormPart.PART_II

    dcn: str | None = None
    change_type: Literal["automatic", "non_automatic"] | None = None
    change_description: str | None = None
    present_method: str | None = None
    proposed_method: str | None = None
    year_of_change_reason: str | None = None
    irs_consent_date: str | None = None
    is_automatic_change: bool | None = None


class PartIIIPayload(PartPayload):
    part: Literal[FormPart.PART_III] = FormPart.PART_III

    prior_method_change: YesNo | None = None
    prior_method_change_year: str | None = None
    prior_method_change_dcn: str | None = None
    transaction_adjustment: YesNo | None = None
    transaction_adjustment_details: str | None = None
    consolidated_group: YesNo | None = None
    parent_name: str | None = None
    parent_ein: str | None = None
    related_entities: YesNo | None = None
    related_entities_details: str | None = None
    books_and_records: YesNo | None = None
    books_and_records_explanation: str | None = None
    prior_request: YesNo | None = None
    prior_request_details: str | None = None
    under_examination: YesNo | None = None
    examining_office: str | None = None
    conference_request: YesNoNa | None = None
    additional_info: str | None = None


class PartIVPayload(PartPayload):
    part: Literal[FormPart.PART_IV] = FormPart.PART_IV

    requires_481a: YesNo | None = Field(default=None, alias="requires481a")
    present_method_income: Decimal | None = None
    proposed_method_income: Decimal | None = None
    adjustment_amount: Decimal | None = None
    adjustment_direction: Literal["positive", "negative"] | None = None
    spread_period: Literal[1, 4] | None = None
    year_one_amount: Decimal | None = None
    year_two_amount: Decimal | None = None
    year_three_amount: Decimal | None = None
    year_four_amount: Decimal | None = None
    year_of_change: int | None = None
    calculation_method: str | None = None
    supporting_documents: str | None = None
    has_nol: YesNo | None = None
    nol_amount: Decimal | None = None
    nol_years: str | None = None

    @field_validator("spread_period", mode="before")
    @classmethod
    def spread_from_text(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return value


class ScheduleAPayload(PartPayload):
    """Change in overall method of accounting."""

    part: Literal[FormPart.SCHEDULE_A] = FormPart.SCHEDULE_A

    current_overall_method: OverallMethod | None = None
    proposed_overall_method: OverallMethod | None = None
    gross_receipts_test: YesNo | None = None
    average_gross_receipts: Decimal | None = None
    income_accrued: Decimal | None = None
    qualifies_as_small_business: YesNo | None = None
    has_inventory: YesNo | None = None
    inventory_method: str | None = None
    section_448_applies: YesNo | None = Field(default=None, alias="section448Applies")
    section_448_exception: str | None = Field(
        default=None, alias="section448Exception"
    )
    additional_info: str | None = None


class ScheduleBPayload(PartPayload):
    """Change in inventory identification or valuation."""

    part: Literal[FormPart.SCHEDULE_B] = FormPart.SCHEDULE_B

    current_inventory_method: InventoryMethod | None = None
    proposed_inventory_method: InventoryMethod | None = None
    current_valuation_method: ValuationMethod | None = None
    proposed_valuation_method: ValuationMethod | None = None
    inventory_types: str | None = None
    lifo_election: Literal["adopting", "terminating", "changing", "na"] | None = None
    lifo_method: (
        Literal["dollar-value", "specific-goods", "simplified-dv", "ipic"] | None
    ) = None
    lifo_pooling_method: (
        Literal["natural-business-unit", "multiple-pools", "single-pool"] | None
    ) = None
    section_263a: Literal["yes", "no", "exempt"] | None = Field(
        default=None, alias="section263A"
    )
    section_263a_method: (
        Literal[
            "simplified-production", "simplified-resale", "facts-circumstances", "other"
        ]
        | None
    ) = Field(default=None, alias="section263AMethod")
    unicap_method: (
        Literal["adopting", "discontinuing", "changing", "na"] | None
    ) = None
    inventory_value_preceding_year: Decimal | None = None
    additional_info: str | None = None


class ScheduleCPayload(PartPayload):
    """Change in depreciation or amortization."""

    part: Literal[FormPart.SCHEDULE_C] = FormPart.SCHEDULE_C

    asset_description: str | None = None
    date_acquired: str | None = None
    current_method: DepreciationMethod | None = None
    proposed_method: DepreciationMethod | None = None
    current_life: str | None = None
    current_convention: Convention | None = None
    proposed_life: str | None = None
    proposed_convention: Convention | None = None
    section_168_property: YesNo | None = Field(default=None, alias="section168Property")
    section_197_intangible: YesNo | None = Field(
        default=None, alias="section197Intangible"
    )
    bonus_depreciation: YesNo | None = None
    section_179_election: YesNo | None = Field(
        default=None, alias="section179Election"
    )
    ads_required: Literal["yes", "no", "elected"] | None = None
    change_reason: str | None = None
    additional_info: str | None = None


class ScheduleDPayload(PartPayload):
    """Change in method for long-term contracts."""

    part: Literal[FormPart.SCHEDULE_D] = FormPart.SCHEDULE_D

    contract_type: (
        Literal["construction", "manufacturing", "engineering", "architecture", "other"]
        | None
    ) = None
    contract_description: str | None = None
    current_method: ContractMethod | None = None
    proposed_method: ContractMethod | None = None
    estimated_duration: str | None = None
    total_contract_price: Decimal | None = None
    completion_percentage: Decimal | None = None
    section_460_applies: YesNo | None = Field(default=None, alias="section460Applies")
    home_construction_contract: YesNo | None = None
    exempt_small_construction: YesNo | None = None
    look_back_method: YesNo | None = None
    simplified_method: YesNo | None = None
    additional_info: str | None = None


class ScheduleEPayload(PartPayload):
    """Mark-to-market election for dealers and traders."""

    part: Literal[FormPart.SCHEDULE_E] = FormPart.SCHEDULE_E

    trader_status: Literal["dealer", "trader", "both"] | None = None
    election_type: Literal["making", "revoking", "changing"] | None = None
    security_types: Literal["securities", "commodities", "both"] | None = None
    current_method: SecuritiesMethod | None = None
    proposed_method: SecuritiesMethod | None = None
    section_475_election: (
        Literal["securities", "commodities", "both", "na"] | None
    ) = Field(default=None, alias="section475Election")
    election_year: str | None = None
    prior_election: YesNo | None = None
    business_description: str | None = None
    trading_frequency: Literal["daily", "weekly", "monthly", "occasional"] | None = None
    average_holding_period: (
        Literal["intraday", "days", "weeks", "months", "long-term"] | None
    ) = None
    substantial_activity: YesNo | None = None
    separate_accounts: YesNoNa | None = None
    hedging_transactions: YesNo | None = None
    additional_info: str | None = None


FormPartPayload = Annotated[
    PartIPayload
    | PartIIPayload
    | PartIIIPayload
    | PartIVPayload
    | ScheduleAPayload
    | ScheduleBPayload
    | ScheduleCPayload
    | ScheduleDPayload
    | ScheduleEPayload,
    Field(discriminator="part"),
]

PAYLOAD_MODELS: dict[FormPart, type[PartPayload]] = {
    FormPart.PART_I: PartIPayload,
    FormPart.PART_II: PartIIPayload,
    FormPart.PART_III: PartIIIPayload,
    FormPart.PART_IV: PartIVPayload,
    FormPart.SCHEDULE_A: ScheduleAPayload,
    FormPart.SCHEDULE_B: ScheduleBPayload,
    FormPart.SCHEDULE_C: ScheduleCPayload,
    FormPart.SCHEDULE_D: ScheduleDPayload,
    FormPart.SCHEDULE_E: ScheduleEPayload,
}

_payload_adapter: TypeAdapter[FormPartPayload] = TypeAdapter(FormPartPayload)


def empty_payload(part: FormPart) -> PartPayload:
    return PAYLOAD_MODELS[part]()


def parse_part(part: FormPart, data: Mapping[str, Any]) -> PartPayload:
    """Parse submitted form data for ``part``.

    Raises:
        pydantic.ValidationError: If any field holds a value outside its type.
    """
    document = {key: value for key, value in data.items() if key != "part"}
    document["part"] = part.value
    return _payload_adapter.validate_python(document)


def invalid_fields(part: FormPart, exc: ValidationError) -> dict[str, str]:
    """Map each rejected field (by stored name) to pydantic's message."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        names = [str(item) for item in error["loc"] if item != part.value]
        if names:
            fields.setdefault(names[0], error["msg"])
    return fields


def load_stored_part(part: FormPart, text: str | None) -> PartPayload:
    """Read a persisted part document without ever failing.

    Unparseable JSON yields an empty payload. Fields holding values the
    model rejects are dropped one by one so the remaining answers survive.
    """
    if not text:
        return empty_payload(part)
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("stored_payload_unparseable", part=part.value, error=str(exc))
        return empty_payload(part)
    if not isinstance(document, dict):
        logger.warning(
            "stored_payload_not_an_object",
            part=part.value,
            type=type(document).__name__,
        )
        return empty_payload(part)

    try:
        return parse_part(part, document)
    except ValidationError as exc:
        invalid = invalid_fields(part, exc)
        logger.warning(
            "stored_payload_fields_dropped", part=part.value, fields=sorted(invalid)
        )
        remaining = {key: value for key, value in document.items() if key not in invalid}

    try:
        return parse_part(part, remaining)
    except ValidationError:
        logger.warning("stored_payload_rejected", part=part.value)
        return empty_payload(part)
