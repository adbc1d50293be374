from form3115_preparer.reference.dcn_seed import (
    DCN_SEEDS,
    REV_PROC,
    DcnSeed,
    SeedResult,
    seed_dcn_references,
)

__all__ = ["DCN_SEEDS", "REV_PROC", "DcnSeed", "SeedResult", "seed_dcn_references"]
