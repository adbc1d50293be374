from form3115_preparer.domain.entities import (
    COMPLETION_LADDER,
    Client,
    DcnReference,
    Filing,
)
from form3115_preparer.domain.payloads import (
    PAYLOAD_MODELS,
    FormPartPayload,
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
    load_stored_part,
    parse_part,
)
from form3115_preparer.domain.value_objects import (
    SPREAD_PERIODS,
    AdjustmentDirection,
    ChangeType,
    DcnCategory,
    EntityType,
    FilingStatus,
    FormPart,
)

__all__ = [
    "COMPLETION_LADDER",
    "PAYLOAD_MODELS",
    "SPREAD_PERIODS",
    "AdjustmentDirection",
    "ChangeType",
    "Client",
    "DcnCategory",
    "DcnReference",
    "EntityType",
    "Filing",
    "FilingStatus",
    "FormPart",
    "FormPartPayload",
    "PartIIIPayload",
    "PartIIPayload",
    "PartIPayload",
    "PartIVPayload",
    "PartPayload",
    "ScheduleAPayload",
    "ScheduleBPayload",
    "ScheduleCPayload",
    "ScheduleDPayload",
    "ScheduleEPayload",
    "load_stored_part",
    "parse_part",
]
