"""Validation rules for Form 3115 parts and schedules.

Every validator is a pure function of its input: it takes the part's field
map (or an already parsed payload) and returns a ValidationResult holding
blocking errors and advisory warnings keyed by field name. Validators never
raise; values that fail to parse become blocking errors on their field.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import ValidationError

from form3115_preparer.domain.payloads import (
    PartIIIPayload,
    PartIIPayload,
    PartIPayload,
    PartIVPayload,
    PartPayload,
    ScheduleAPayload,
    ScheduleBPayload,
    ScheduleCPayload,
    ScheduleDPayload,
    ScheduleEPayload,
    empty_payload,
    invalid_fields,
    parse_part,
)
from form3115_preparer.domain.value_objects import FormPart
from form3115_preparer.services.adjustment import LARGE_ADJUSTMENT_THRESHOLD

EIN_PATTERN = re.compile(r"^\d{2}-\d{7}$")
PHONE_PATTERN = re.compile(r"^[\d\s\-().]+$")
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
DCN_PATTERN = re.compile(r"^\d{1,3}[a-zA-Z]?$")

US_STATE_CODES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
        "DC", "PR", "VI", "GU", "AS", "MP",
    }
)

EARLIEST_TAX_YEAR = 1990
MIN_DESCRIPTION_LENGTH = 50
# Section 448(c) gross receipts test, as a fixed amount
GROSS_RECEIPTS_THRESHOLD = Decimal("30_000_000")

EIN_FORMAT_MESSAGE = "EIN must be in format XX-XXXXXXX"


@dataclass
class ValidationResult:
    errors: dict[str, str] = field(default_factory=dict)
    warnings: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": dict(self.errors),
            "warnings": dict(self.warnings),
        }


# =============================================================================
# Format helpers
# =============================================================================


def validate_ein(ein: str | None) -> bool:
    return bool(ein) and EIN_PATTERN.match(ein) is not None


def validate_phone(phone: str | None) -> bool:
    if not phone or PHONE_PATTERN.match(phone) is None:
        return False
    return sum(ch.isdigit() for ch in phone) >= 10


def validate_zip_code(zip_code: str | None) -> bool:
    return bool(zip_code) and ZIP_PATTERN.match(zip_code) is not None


def validate_state_code(state: str | None) -> bool:
    return bool(state) and state.upper() in US_STATE_CODES


def validate_tax_year(year: int, today: date | None = None) -> bool:
    current_year = (today or date.today()).year
    return EARLIEST_TAX_YEAR <= year <= current_year + 1


def validate_dcn(dcn: str | None) -> bool:
    return bool(dcn) and DCN_PATTERN.match(dcn) is not None


def format_ein(ein: str) -> str:
    """Insert the dash into a nine-digit EIN; anything else is returned as is."""
    digits = "".join(ch for ch in ein if ch.isdigit())
    if len(digits) == 9:
        return f"{digits[:2]}-{digits[2:]}"
    return ein


def format_currency(amount: Decimal | int | float) -> str:
    """Whole-dollar display, e.g. ``$1,234`` or ``-$50,000``."""
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,}"


# =============================================================================
# Part validators
# =============================================================================


def _coerce(part: FormPart, data: PartPayload | Mapping[str, Any]) -> tuple[Any, dict[str, str]]:
    """Parse a field map, turning rejected values into field errors."""
    if isinstance(data, PartPayload):
        return data, {}
    try:
        return parse_part(part, data), {}
    except ValidationError as exc:
        rejected = invalid_fields(part, exc)

    errors = {name: f"Invalid value: {message}" for name, message in rejected.items()}
    remaining = {key: value for key, value in data.items() if key not in rejected}
    try:
        return parse_part(part, remaining), errors
    except ValidationError:
        return empty_payload(part), errors


def validate_part_i(data: PartIPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.PART_I, data)
    warnings: dict[str, str] = {}

    if not payload.filer_name:
        errors.setdefault("filerName", "Filer name is required")

    if not payload.filer_ein:
        errors.setdefault("filerEin", "EIN is required")
    elif not validate_ein(payload.filer_ein):
        errors.setdefault("filerEin", EIN_FORMAT_MESSAGE)

    if not payload.filer_address:
        errors.setdefault("filerAddress", "Street address is required")

    if not payload.filer_city:
        errors.setdefault("filerCity", "City is required")

    if not payload.filer_state:
        errors.setdefault("filerState", "State is required")
    elif not validate_state_code(payload.filer_state):
        errors.setdefault("filerState", "Invalid state code")

    if not payload.filer_zip:
        errors.setdefault("filerZip", "ZIP code is required")
    elif not validate_zip_code(payload.filer_zip):
        errors.setdefault("filerZip", "ZIP code must be in format XXXXX or XXXXX-XXXX")

    if not payload.contact_phone:
        warnings["contactPhone"] = "Contact phone is recommended"
    elif not validate_phone(payload.contact_phone):
        warnings["contactPhone"] = "Phone number format may be invalid"

    if not payload.principal_business_code:
        warnings["principalBusinessCode"] = "NAICS code is recommended"

    return ValidationResult(errors=errors, warnings=warnings)


def validate_part_ii(data: PartIIPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.PART_II, data)
    warnings: dict[str, str] = {}

    if not payload.dcn:
        errors.setdefault("dcn", "Designated Change Number (DCN) is required")
    elif not validate_dcn(payload.dcn):
        # Lenient: the official DCN list is not fully known here
        warnings["dcn"] = "DCN format may be invalid - verify against Rev. Proc. 2023-34"

    if not payload.change_description:
        errors.setdefault("changeDescription", "Description of the change is required")
    elif len(payload.change_description) < MIN_DESCRIPTION_LENGTH:
        warnings["changeDescription"] = (
            "Description should be more detailed (at least 50 characters)"
        )

    if not payload.present_method:
        errors.setdefault("presentMethod", "Present method of accounting is required")

    if not payload.proposed_method:
        errors.setdefault("proposedMethod", "Proposed method of accounting is required")

    if not payload.year_of_change_reason:
        warnings["yearOfChangeReason"] = "Explanation for year of change is recommended"

    return ValidationResult(errors=errors, warnings=warnings)


def validate_part_iii(data: PartIIIPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.PART_III, data)

    if payload.prior_method_change == "yes" and not payload.prior_method_change_year:
        errors.setdefault(
            "priorMethodChangeYear",
            "Year of prior change is required when prior change is indicated",
        )

    if payload.consolidated_group == "yes":
        if not payload.parent_name:
            errors.setdefault(
                "parentName",
                "Parent company name is required for consolidated group members",
            )
        if not payload.parent_ein:
            errors.setdefault(
                "parentEin",
                "Parent company EIN is required for consolidated group members",
            )
        elif not validate_ein(payload.parent_ein):
            errors.setdefault("parentEin", "Parent EIN must be in format XX-XXXXXXX")

    if payload.under_examination == "yes" and not payload.examining_office:
        errors.setdefault(
            "examiningOffice", "Examining office is required when under examination"
        )

    if payload.books_and_records == "no" and not payload.books_and_records_explanation:
        errors.setdefault(
            "booksAndRecordsExplanation",
            "Explanation is required when books and records do not match "
            "proposed method",
        )

    return ValidationResult(errors=errors)


def effective_requires_481a(
    data: PartIVPayload | Mapping[str, Any], dcn_requires_481a: bool
) -> bool:
    """The user's explicit yes/no answer wins over the DCN's flag."""
    if isinstance(data, PartIVPayload):
        answer = data.requires_481a
    else:
        answer = data.get("requires481a", data.get("requires_481a"))
    if isinstance(answer, str) and answer.strip().lower() in ("yes", "no"):
        return answer.strip().lower() == "yes"
    return dcn_requires_481a


def validate_part_iv(
    data: PartIVPayload | Mapping[str, Any], requires_481a: bool
) -> ValidationResult:
    payload, errors = _coerce(FormPart.PART_IV, data)
    warnings: dict[str, str] = {}

    if not requires_481a:
        return ValidationResult(errors=errors, warnings=warnings)

    # Zero is a valid figure; only an unset value blocks
    if payload.present_method_income is None:
        errors.setdefault(
            "presentMethodIncome",
            "Present method income is required for 481(a) calculation",
        )
    if payload.proposed_method_income is None:
        errors.setdefault(
            "proposedMethodIncome",
            "Proposed method income is required for 481(a) calculation",
        )

    if payload.spread_period is None:
        warnings["spreadPeriod"] = "Spread period should be selected"

    adjustment = abs(
        (payload.proposed_method_income or Decimal(0))
        - (payload.present_method_income or Decimal(0))
    )
    if adjustment > LARGE_ADJUSTMENT_THRESHOLD:
        warnings["adjustmentAmount"] = (
            "Large adjustment amount - please verify calculations"
        )

    return ValidationResult(errors=errors, warnings=warnings)


def validate_schedule_a(data: ScheduleAPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.SCHEDULE_A, data)
    warnings: dict[str, str] = {}

    if not payload.current_overall_method:
        errors.setdefault("currentOverallMethod", "Current overall method is required")
    if not payload.proposed_overall_method:
        errors.setdefault("proposedOverallMethod", "Proposed overall method is required")
    elif payload.proposed_overall_method == payload.current_overall_method:
        errors.setdefault(
            "proposedOverallMethod",
            "Proposed method must be different from current method",
        )

    if not payload.gross_receipts_test:
        errors.setdefault("grossReceiptsTest", "Gross receipts test answer is required")

    if (
        payload.proposed_overall_method == "cash"
        and payload.gross_receipts_test == "no"
        and payload.average_gross_receipts is not None
        and payload.average_gross_receipts > GROSS_RECEIPTS_THRESHOLD
    ):
        warnings["averageGrossReceipts"] = (
            "Average gross receipts exceed $30,000,000 - the cash method may not "
            "be available under Section 448"
        )

    return ValidationResult(errors=errors, warnings=warnings)


def validate_schedule_b(data: ScheduleBPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.SCHEDULE_B, data)
    warnings: dict[str, str] = {}

    if not payload.current_inventory_method:
        errors.setdefault(
            "currentInventoryMethod", "Current inventory method is required"
        )
    if not payload.proposed_inventory_method:
        errors.setdefault(
            "proposedInventoryMethod", "Proposed inventory method is required"
        )
    elif payload.proposed_inventory_method == payload.current_inventory_method:
        errors.setdefault(
            "proposedInventoryMethod",
            "Proposed method must be different from current method",
        )

    if payload.lifo_election and payload.lifo_election != "na":
        if not payload.lifo_method:
            errors.setdefault("lifoMethod", "LIFO method is required for LIFO elections")
        if not payload.lifo_pooling_method:
            warnings["lifoPoolingMethod"] = (
                "Pooling method is recommended for LIFO elections"
            )

    if payload.section_263a == "yes" and not payload.section_263a_method:
        errors.setdefault(
            "section263AMethod",
            "UNICAP method is required when Section 263A applies",
        )

    return ValidationResult(errors=errors, warnings=warnings)


def validate_schedule_c(data: ScheduleCPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.SCHEDULE_C, data)
    warnings: dict[str, str] = {}

    if not payload.asset_description:
        errors.setdefault("assetDescription", "Asset description is required")
    if not payload.current_method:
        errors.setdefault("currentMethod", "Current depreciation method is required")
    if not payload.proposed_method:
        errors.setdefault("proposedMethod", "Proposed depreciation method is required")
    if not payload.change_reason:
        errors.setdefault("changeReason", "Reason for the change is required")

    if not payload.date_acquired:
        warnings["dateAcquired"] = "Date placed in service is recommended"
    if not payload.current_life:
        warnings["currentLife"] = "Current recovery period is recommended"
    if not payload.proposed_life:
        warnings["proposedLife"] = "Proposed recovery period is recommended"

    return ValidationResult(errors=errors, warnings=warnings)


def validate_schedule_d(data: ScheduleDPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.SCHEDULE_D, data)
    warnings: dict[str, str] = {}

    if not payload.contract_type:
        errors.setdefault("contractType", "Contract type is required")
    if not payload.current_method:
        errors.setdefault("currentMethod", "Current method is required")
    if not payload.proposed_method:
        errors.setdefault("proposedMethod", "Proposed method is required")
    if not payload.contract_description:
        errors.setdefault("contractDescription", "Contract description is required")

    if payload.section_460_applies == "yes" and not payload.look_back_method:
        warnings["lookBackMethod"] = (
            "Look-back method answer is recommended when Section 460 applies"
        )

    return ValidationResult(errors=errors, warnings=warnings)


def validate_schedule_e(data: ScheduleEPayload | Mapping[str, Any]) -> ValidationResult:
    payload, errors = _coerce(FormPart.SCHEDULE_E, data)
    warnings: dict[str, str] = {}

    if not payload.trader_status:
        errors.setdefault("traderStatus", "Dealer or trader status is required")
    if not payload.security_types:
        errors.setdefault("securityTypes", "Security types are required")
    if not payload.section_475_election:
        errors.setdefault(
            "section475Election", "Section 475 election status is required"
        )

    if payload.election_type == "making" and not payload.election_year:
        errors.setdefault(
            "electionYear", "Election year is required when making an election"
        )

    if payload.trader_status in ("trader", "both"):
        if not payload.trading_frequency:
            warnings["tradingFrequency"] = (
                "Trading frequency is recommended to support trader status"
            )
        if not payload.average_holding_period:
            warnings["averageHoldingPeriod"] = (
                "Average holding period is recommended to support trader status"
            )

    return ValidationResult(errors=errors, warnings=warnings)


_VALIDATORS: dict[FormPart, Callable[[Any], ValidationResult]] = {
    FormPart.PART_I: validate_part_i,
    FormPart.PART_II: validate_part_ii,
    FormPart.PART_III: validate_part_iii,
    FormPart.SCHEDULE_A: validate_schedule_a,
    FormPart.SCHEDULE_B: validate_schedule_b,
    FormPart.SCHEDULE_C: validate_schedule_c,
    FormPart.SCHEDULE_D: validate_schedule_d,
    FormPart.SCHEDULE_E: validate_schedule_e,
}


def validate_part(
    part: FormPart,
    data: PartPayload | Mapping[str, Any],
    requires_481a: bool = False,
) -> ValidationResult:
    """Run the validator for ``part``.

    ``requires_481a`` only matters for Part IV.
    """
    if part is FormPart.PART_IV:
        return validate_part_iv(data, requires_481a)
    return _VALIDATORS[part](data)


def validate_filing(
    parts: Mapping[FormPart, PartPayload | Mapping[str, Any] | None],
    requires_481a: bool,
    required_schedules: list[FormPart] | tuple[FormPart, ...] = (),
) -> ValidationResult:
    """Check a whole filing for completeness before it is marked ready."""
    errors: dict[str, str] = {}
    warnings: dict[str, str] = {}

    for part, title in (
        (FormPart.PART_I, "Part I (Filer Information)"),
        (FormPart.PART_II, "Part II (Change Information)"),
    ):
        data = parts.get(part)
        if not data:
            errors[part.key] = f"{title} is not complete"
        elif not validate_part(part, data).is_valid:
            errors[part.key] = f"{part.label} has validation errors"

    if not parts.get(FormPart.PART_III):
        warnings[FormPart.PART_III.key] = "Part III (Change Details) is not complete"

    part_iv = parts.get(FormPart.PART_IV)
    if requires_481a and not part_iv:
        errors[FormPart.PART_IV.key] = (
            "Part IV (Section 481(a) Adjustment) is required for this DCN"
        )
    elif part_iv and not validate_part_iv(part_iv, requires_481a).is_valid:
        errors[FormPart.PART_IV.key] = "Part IV has validation errors"

    for schedule in required_schedules:
        data = parts.get(schedule)
        if not data:
            errors[schedule.key] = f"{schedule.label} is required for this DCN"
        elif not validate_part(schedule, data).is_valid:
            errors[schedule.key] = f"{schedule.label} has validation errors"

    return ValidationResult(errors=errors, warnings=warnings)
