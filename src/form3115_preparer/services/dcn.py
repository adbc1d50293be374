"""Designated change number lookup and filing requirements.

A DCN decides whether a change is automatic, whether a Section 481(a)
adjustment applies, the suggested spread period and which of Schedules A-E
the filing must include. Users may type DCNs that are not in the reference
table; such lookups return None and every requirement flag stays off.
"""

import re
from dataclasses import dataclass, field

from form3115_preparer.domain.entities import DcnReference
from form3115_preparer.domain.value_objects import DcnCategory, FormPart
from form3115_preparer.logging_config import get_logger
from form3115_preparer.repositories.interfaces import DcnReferenceRepository

logger = get_logger(__name__)

DEFAULT_SEARCH_LIMIT = 20

BASE_PARTS = (FormPart.PART_I, FormPart.PART_II, FormPart.PART_III)

_DCN_PARTS = re.compile(r"^\s*(\d*)\s*(.*?)\s*$")


def dcn_sort_key(dcn_number: str) -> tuple[int, int, str]:
    """Natural ordering for change numbers.

    Numbers compare by their digit prefix first, then by any letter suffix,
    so "9" < "10" < "10A" < "11". Entries without a digit prefix sort last.
    """
    match = _DCN_PARTS.match(dcn_number)
    digits, suffix = match.groups() if match else ("", dcn_number)
    if not digits:
        return (1, 0, dcn_number.upper())
    return (0, int(digits), suffix.upper())


@dataclass
class FilingRequirements:
    """Sections a filing must complete for its selected DCN."""

    dcn_number: str | None
    reference: DcnReference | None = None
    is_automatic: bool = False
    requires_481a: bool = False
    spread_period: int | None = None
    required_schedules: list[FormPart] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.reference is not None

    @property
    def required_parts(self) -> list[FormPart]:
        parts = list(BASE_PARTS)
        if self.requires_481a:
            parts.append(FormPart.PART_IV)
        parts.extend(self.required_schedules)
        return parts


class DcnResolver:
    def __init__(self, dcn_repo: DcnReferenceRepository) -> None:
        self._dcn_repo = dcn_repo

    def lookup(self, dcn_number: str | None) -> DcnReference | None:
        if not dcn_number or not dcn_number.strip():
            return None
        reference = self._dcn_repo.get_by_number(dcn_number.strip())
        if reference is None:
            logger.info("dcn_lookup_miss", dcn=dcn_number)
        return reference

    def search(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[DcnReference]:
        query = query.strip()
        if not query:
            return []
        return self._ordered(self._dcn_repo.search(query))[:limit]

    def list_by_category(self, category: DcnCategory) -> list[DcnReference]:
        return self._ordered(self._dcn_repo.list_by_category(category))

    def list_all(self) -> list[DcnReference]:
        return self._ordered(self._dcn_repo.list_all())

    def resolve_requirements(self, dcn_number: str | None) -> FilingRequirements:
        reference = self.lookup(dcn_number)
        if reference is None:
            return FilingRequirements(dcn_number=dcn_number)
        return FilingRequirements(
            dcn_number=reference.dcn_number,
            reference=reference,
            is_automatic=reference.is_automatic,
            requires_481a=reference.requires_481a,
            spread_period=reference.spread_period,
            required_schedules=reference.required_schedules,
        )

    def _ordered(self, references) -> list[DcnReference]:
        return sorted(references, key=lambda ref: dcn_sort_key(ref.dcn_number))


__all__ = [
    "DEFAULT_SEARCH_LIMIT",
    "DcnResolver",
    "FilingRequirements",
    "dcn_sort_key",
]
