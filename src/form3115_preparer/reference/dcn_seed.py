"""Designated change numbers from Rev. Proc. 2025-23.

The list is tied to one revenue procedure revision. Re-seeding upserts by
change number, so running it twice leaves one row per number.
"""

from dataclasses import dataclass
from typing import NamedTuple

from form3115_preparer.domain.entities import DcnReference
from form3115_preparer.domain.value_objects import DcnCategory
from form3115_preparer.logging_config import get_logger
from form3115_preparer.repositories.interfaces import DcnReferenceRepository

logger = get_logger(__name__)

REV_PROC = "Rev. Proc. 2025-23"


class DcnSeed(NamedTuple):
    number: str
    description: str
    category: DcnCategory
    is_automatic: bool
    requires_481a: bool
    spread_period: int | None
    schedules: str  # letters of the required schedules, e.g. "A" or ""
    section: str


DCN_SEEDS: tuple[DcnSeed, ...] = (
    # Overall method (Section 15)
    DcnSeed("122", "Change to overall cash method for small business taxpayer",
            DcnCategory.OVERALL_METHOD, True, True, 4, "A", "15.01"),
    DcnSeed("123", "Change from overall cash method to overall accrual method",
            DcnCategory.OVERALL_METHOD, True, True, 4, "A", "15.02"),
    DcnSeed("124", "Change from cash to accrual method for specific item "
            "(excludes foreign income taxes)",
            DcnCategory.OVERALL_METHOD, True, True, 4, "A", "15.08"),
    # Timing of income recognition (Section 17)
    DcnSeed("32", "Change to advance payment deferral method under "
            "Treas. Reg. §1.451-8",
            DcnCategory.REVENUE, True, True, 4, "", "17.04"),
    DcnSeed("233", "Change to comply with final revenue recognition "
            "regulations (ASC 606)",
            DcnCategory.REVENUE, True, True, 4, "", "17.12"),
    # Inventories (Sections 22 and 23)
    DcnSeed("21", "Change from LIFO inventory method",
            DcnCategory.INVENTORY, True, True, 4, "B", "23.01"),
    DcnSeed("22", "Change to LIFO inventory method",
            DcnCategory.INVENTORY, False, False, None, "B", "23.02"),
    DcnSeed("24", "Change to UNICAP method",
            DcnCategory.INVENTORY, True, True, 4, "B", "22.01"),
    # Depreciation (Section 6)
    DcnSeed("7", "Impermissible to permissible method of accounting for "
            "depreciation",
            DcnCategory.DEPRECIATION, True, True, None, "C", "6.01"),
    DcnSeed("8", "Permissible to permissible method of accounting for "
            "depreciation",
            DcnCategory.DEPRECIATION, True, False, None, "C", "6.02"),
    DcnSeed("205", "Depreciation - late partial disposition election",
            DcnCategory.DEPRECIATION, True, True, None, "C", "6.10"),
    DcnSeed("206", "Depreciation - revoke partial disposition election",
            DcnCategory.DEPRECIATION, True, True, None, "C", "6.11"),
    DcnSeed("244", "Disposition of tangible depreciable assets (other than "
            "buildings)",
            DcnCategory.DEPRECIATION, True, True, None, "C", "6.14"),
    # Tangible property regulations (Sections 11 and 12)
    DcnSeed("184", "Change to deducting amounts paid for materials and supplies",
            DcnCategory.TANGIBLE_PROPERTY, True, True, 4, "", "11.08"),
    DcnSeed("186", "Change to capitalizing repair and maintenance costs",
            DcnCategory.TANGIBLE_PROPERTY, True, True, 4, "", "11.10"),
    DcnSeed("187", "Change to deducting repair and maintenance costs",
            DcnCategory.TANGIBLE_PROPERTY, True, True, 4, "", "11.11"),
    DcnSeed("224", "Change to interest capitalization method (excludes certain "
            "improvement property)",
            DcnCategory.TANGIBLE_PROPERTY, True, True, 4, "", "12.14"),
    # Research and experimental expenditures (Section 7)
    DcnSeed("265", "Change for domestic R&E expenditures under TCJA Section 174 "
            "(tax years beginning before 1/1/2025)",
            DcnCategory.RESEARCH, True, True, 4, "", "7.01"),
    DcnSeed("236", "Change to Section 174A method for domestic R&E expenditures "
            "(tax years beginning after 12/31/2024)",
            DcnCategory.RESEARCH, True, False, None, "", "7.02"),
    DcnSeed("237", "Change in method for foreign R&E expenditures under "
            "Section 174",
            DcnCategory.RESEARCH, True, True, 4, "", "7.03"),
    # Long-term contracts (Section 19)
    DcnSeed("30", "Change to percentage-of-completion method for long-term "
            "contracts",
            DcnCategory.LONG_TERM_CONTRACTS, True, True, 4, "D", "19.01"),
    DcnSeed("31", "Change from percentage-of-completion method for exempt "
            "contracts",
            DcnCategory.LONG_TERM_CONTRACTS, True, True, 4, "D", "19.02"),
    # Expenses (Section 20)
    DcnSeed("135", "Change to recurring item exception (excludes reward program "
            "liabilities)",
            DcnCategory.EXPENSES, True, True, 4, "", "20.07"),
    # Bad debts (Section 24)
    DcnSeed("166", "Change to specific charge-off method for bad debts",
            DcnCategory.BAD_DEBTS, True, True, 4, "", "24.01"),
    DcnSeed("167", "Change from reserve method to specific charge-off method "
            "for bad debts",
            DcnCategory.BAD_DEBTS, True, True, 4, "", "24.02"),
    DcnSeed("266", "Change to allowance charge-off method for regulated "
            "financial companies",
            DcnCategory.BAD_DEBTS, True, True, 4, "", "24.03"),
    # Leasing (Section 14)
    DcnSeed("228", "Change for leases to comply with ASC 842",
            DcnCategory.LEASING, True, True, 4, "", "14.17"),
    # Mark-to-market (Section 25)
    DcnSeed("64", "Change to mark-to-market method for dealers in securities",
            DcnCategory.MARK_TO_MARKET, False, True, None, "E", "25.01"),
    # Utilities (Section 10)
    DcnSeed("91", "Up-front payments for network upgrades received by utilities",
            DcnCategory.REVENUE, True, True, 4, "", "10.01"),
)


@dataclass
class SeedResult:
    created: int
    updated: int

    @property
    def total(self) -> int:
        return self.created + self.updated


def seed_to_reference(seed: DcnSeed) -> DcnReference:
    return DcnReference(
        dcn_number=seed.number,
        description=seed.description,
        category=seed.category,
        is_automatic=seed.is_automatic,
        requires_481a=seed.requires_481a,
        spread_period=seed.spread_period,
        requires_schedule_a="A" in seed.schedules,
        requires_schedule_b="B" in seed.schedules,
        requires_schedule_c="C" in seed.schedules,
        requires_schedule_d="D" in seed.schedules,
        requires_schedule_e="E" in seed.schedules,
        rev_proc_section=f"{REV_PROC}, Section {seed.section}",
        rev_proc=REV_PROC,
    )


def seed_dcn_references(
    repo: DcnReferenceRepository, seeds: tuple[DcnSeed, ...] = DCN_SEEDS
) -> SeedResult:
    """Upsert every seed record keyed by change number."""
    created = 0
    updated = 0
    for seed in seeds:
        if repo.upsert(seed_to_reference(seed)):
            created += 1
        else:
            updated += 1
    logger.info(
        "dcn_references_seeded", rev_proc=REV_PROC, created=created, updated=updated
    )
    return SeedResult(created=created, updated=updated)
