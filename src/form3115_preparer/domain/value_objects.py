from enum import Enum


class FormPart(str, Enum):
    """Sections of Form 3115 captured for a filing.

    The values double as the last-saved step tags stored on a filing.
    """

    PART_I = "part-i"
    PART_II = "part-ii"
    PART_III = "part-iii"
    PART_IV = "part-iv"
    SCHEDULE_A = "schedule-a"
    SCHEDULE_B = "schedule-b"
    SCHEDULE_C = "schedule-c"
    SCHEDULE_D = "schedule-d"
    SCHEDULE_E = "schedule-e"

    @property
    def is_schedule(self) -> bool:
        return self.value.startswith("schedule-")

    @property
    def label(self) -> str:
        prefix, _, suffix = self.value.partition("-")
        return f"{prefix.title()} {suffix.upper()}"

    @property
    def key(self) -> str:
        """camelCase name used in summaries, e.g. "partIV" or "scheduleA"."""
        prefix, _, suffix = self.value.partition("-")
        return f"{prefix}{suffix.upper()}"

    @classmethod
    def schedules(cls) -> list["FormPart"]:
        return [part for part in cls if part.is_schedule]


class FilingStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    COMPLETED = "completed"


class ChangeType(str, Enum):
    AUTOMATIC = "automatic"
    NON_AUTOMATIC = "non_automatic"


class AdjustmentDirection(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class DcnCategory(str, Enum):
    OVERALL_METHOD = "overall_method"
    REVENUE = "revenue"
    INVENTORY = "inventory"
    DEPRECIATION = "depreciation"
    TANGIBLE_PROPERTY = "tangible_property"
    RESEARCH = "research"
    LONG_TERM_CONTRACTS = "long_term_contracts"
    EXPENSES = "expenses"
    BAD_DEBTS = "bad_debts"
    LEASING = "leasing"
    MARK_TO_MARKET = "mark_to_market"
    OTHER = "other"


class EntityType(str, Enum):
    C_CORP = "c-corp"
    S_CORP = "s-corp"
    PARTNERSHIP = "partnership"
    LLC = "llc"
    SOLE_PROP = "sole-prop"
    NONPROFIT = "nonprofit"


SPREAD_PERIODS = (1, 4)
