"""Command-line interface for Form 3115 Preparer."""

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from form3115_preparer import __version__
from form3115_preparer.config import get_settings
from form3115_preparer.domain.entities import DcnReference
from form3115_preparer.domain.value_objects import DcnCategory
from form3115_preparer.exceptions import Form3115Error
from form3115_preparer.reference.dcn_seed import REV_PROC, seed_dcn_references
from form3115_preparer.repositories.sqlite import (
    SQLiteClientRepository,
    SQLiteDatabase,
    SQLiteDcnReferenceRepository,
    SQLiteFilingRepository,
)
from form3115_preparer.services.adjustment import calculate_481a_adjustment
from form3115_preparer.services.dcn import DEFAULT_SEARCH_LIMIT, DcnResolver
from form3115_preparer.services.filings import FilingService
from form3115_preparer.services.pdf_generator import (
    FieldMap,
    PdfGenerator,
    pdf_filename,
    verify_field_map,
)


def get_default_db_path() -> Path:
    """Database path from settings (F3115_SQLITE_PATH)."""
    return Path(get_settings().sqlite_path)


def _open_database(args: argparse.Namespace) -> SQLiteDatabase | None:
    db_path = Path(args.database) if args.database else get_default_db_path()
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        print("Run 'f3115 init' to create a new database")
        return None
    return SQLiteDatabase(str(db_path))


def _print_dcn_row(reference: DcnReference) -> None:
    kind = "auto" if reference.is_automatic else "non-auto"
    adjustment = "481(a)" if reference.requires_481a else ""
    print(
        f"{reference.dcn_number:<6} {kind:<9} {adjustment:<7} "
        f"{reference.description[:70]}"
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = Path(args.database) if args.database else get_default_db_path()

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    db.close()

    print(f"Initialized database at {db_path}")
    print("Run 'f3115 seed-dcns' to load the DCN reference table")
    return 0


def cmd_seed_dcns(args: argparse.Namespace) -> int:
    """Load or refresh the DCN reference table."""
    db = _open_database(args)
    if db is None:
        return 1

    db.initialize()
    result = seed_dcn_references(SQLiteDcnReferenceRepository(db))
    db.close()

    print(
        f"Seeded {result.total} DCNs from {REV_PROC} "
        f"({result.created} created, {result.updated} updated)"
    )
    return 0


def cmd_dcn_show(args: argparse.Namespace) -> int:
    """Show one DCN and the sections a filing needs for it."""
    db = _open_database(args)
    if db is None:
        return 1

    requirements = DcnResolver(SQLiteDcnReferenceRepository(db)).resolve_requirements(
        args.number
    )
    reference = requirements.reference
    if reference is None:
        print(f"DCN {args.number} not found")
        return 1

    print(f"DCN {reference.dcn_number}: {reference.description}")
    print(f"  Category:        {reference.category.value}")
    print(f"  Change type:     {'automatic' if reference.is_automatic else 'non-automatic'}")
    print(f"  481(a) required: {'yes' if reference.requires_481a else 'no'}")
    if reference.spread_period:
        print(f"  Spread period:   {reference.spread_period} year(s)")
    schedules = ", ".join(s.label for s in requirements.required_schedules) or "none"
    print(f"  Schedules:       {schedules}")
    print(f"  Required parts:  {', '.join(p.label for p in requirements.required_parts)}")
    if reference.rev_proc_section:
        print(f"  Citation:        {reference.rev_proc_section}")
    return 0


def cmd_dcn_search(args: argparse.Namespace) -> int:
    """Search DCNs by number or description."""
    db = _open_database(args)
    if db is None:
        return 1

    results = DcnResolver(SQLiteDcnReferenceRepository(db)).search(
        args.query, args.limit
    )
    if not results:
        print(f"No DCNs match '{args.query}'")
        return 0
    for reference in results:
        _print_dcn_row(reference)
    return 0


def cmd_dcn_category(args: argparse.Namespace) -> int:
    """List DCNs in a category."""
    try:
        category = DcnCategory(args.name)
    except ValueError:
        valid = ", ".join(c.value for c in DcnCategory)
        print(f"Error: Unknown category '{args.name}'. Valid categories: {valid}")
        return 1

    db = _open_database(args)
    if db is None:
        return 1

    results = DcnResolver(SQLiteDcnReferenceRepository(db)).list_by_category(category)
    for reference in results:
        _print_dcn_row(reference)
    print(f"{len(results)} DCN(s) in {category.value}")
    return 0


def cmd_calc_481a(args: argparse.Namespace) -> int:
    """Compute a Section 481(a) adjustment and its spread."""
    try:
        present = Decimal(args.present)
        proposed = Decimal(args.proposed)
    except InvalidOperation:
        print("Error: --present and --proposed must be decimal amounts")
        return 1

    try:
        adjustment = calculate_481a_adjustment(present, proposed, args.spread)
    except Form3115Error as e:
        print(f"Error: {e.message}")
        return 1

    print(f"Present method income:  {adjustment.present_method_income:,.2f}")
    print(f"Proposed method income: {adjustment.proposed_method_income:,.2f}")
    print(
        f"Adjustment:             {adjustment.adjustment_amount:,.2f} "
        f"({adjustment.direction.value})"
    )
    for year, amount in enumerate(adjustment.recognized_amounts, start=1):
        print(f"  Year {year}: {amount:,.2f}")
    if adjustment.is_large:
        print("Warning: Large adjustment amount - please verify calculations")
    return 0


def cmd_generate_pdf(args: argparse.Namespace) -> int:
    """Write the filled Form 3115 for a filing."""
    try:
        filing_id = UUID(args.filing_id)
    except ValueError:
        print(f"Error: Invalid filing ID: {args.filing_id}")
        return 1

    db = _open_database(args)
    if db is None:
        return 1

    settings = get_settings()
    owner_id = args.owner or settings.default_owner_id
    service = FilingService(
        client_repo=SQLiteClientRepository(db),
        filing_repo=SQLiteFilingRepository(db),
        resolver=DcnResolver(SQLiteDcnReferenceRepository(db)),
    )

    try:
        filing, client = service.get_filing_with_client(owner_id, filing_id)
        generator = PdfGenerator(
            template_path=args.template or settings.pdf_template_path,
            field_map=FieldMap.load(args.field_map or settings.field_map_path),
            attach_statement=not args.no_statement and settings.attach_statement,
        )
        data = generator.generate(filing, client)
    except Form3115Error as e:
        print(f"Error: {e.message}")
        return 1

    output = Path(args.output) if args.output else Path(
        pdf_filename(client.name, filing.tax_year)
    )
    output.write_bytes(data)
    print(f"Wrote {output} ({len(data)} bytes)")
    return 0


def cmd_verify_map(args: argparse.Namespace) -> int:
    """Check the field map against the template's fields."""
    settings = get_settings()
    template = Path(args.template or settings.pdf_template_path)

    try:
        field_map = FieldMap.load(args.field_map or settings.field_map_path)
        report = verify_field_map(template, field_map)
    except Form3115Error as e:
        print(f"Error: {e.message}")
        return 1

    print(f"Template revision: {report.template_revision}")
    print(f"Matched fields:    {len(report.matched)}")
    print(f"Unmapped fields:   {report.unmapped_template_fields}")
    if report.is_complete:
        print("All mapped fields exist in the template")
        return 0

    print(f"Missing in template: {len(report.missing_in_template)}")
    for name in report.missing_in_template:
        print(f"  - {name}")
    return 1


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Form 3115 Preparer v{__version__}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="f3115",
        description="Form 3115 Preparer - accounting method change filings",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # seed-dcns command
    seed_parser = subparsers.add_parser(
        "seed-dcns", help="Load or refresh the DCN reference table"
    )
    seed_parser.set_defaults(func=cmd_seed_dcns)

    # dcn command group
    dcn_parser = subparsers.add_parser("dcn", help="Designated change number lookups")
    dcn_subparsers = dcn_parser.add_subparsers(
        dest="dcn_command", help="DCN subcommands"
    )

    dcn_show_parser = dcn_subparsers.add_parser("show", help="Show one DCN")
    dcn_show_parser.add_argument("number", help="Change number, e.g. 184")
    dcn_show_parser.set_defaults(func=cmd_dcn_show)

    dcn_search_parser = dcn_subparsers.add_parser(
        "search", help="Search by number or description"
    )
    dcn_search_parser.add_argument("query", help="Search text")
    dcn_search_parser.add_argument(
        "--limit", type=int, default=DEFAULT_SEARCH_LIMIT, help="Maximum results"
    )
    dcn_search_parser.set_defaults(func=cmd_dcn_search)

    dcn_category_parser = dcn_subparsers.add_parser(
        "category", help="List DCNs in a category"
    )
    dcn_category_parser.add_argument("name", help="Category, e.g. depreciation")
    dcn_category_parser.set_defaults(func=cmd_dcn_category)

    # calc-481a command
    calc_parser = subparsers.add_parser(
        "calc-481a", help="Compute a Section 481(a) adjustment"
    )
    calc_parser.add_argument(
        "--present", required=True, help="Cumulative income under the present method"
    )
    calc_parser.add_argument(
        "--proposed", required=True, help="Cumulative income under the proposed method"
    )
    calc_parser.add_argument(
        "--spread",
        type=int,
        choices=[1, 4],
        default=1,
        help="Spread period in years (default: 1)",
    )
    calc_parser.set_defaults(func=cmd_calc_481a)

    # generate-pdf command
    pdf_parser = subparsers.add_parser(
        "generate-pdf", help="Write the filled Form 3115 for a filing"
    )
    pdf_parser.add_argument("filing_id", help="Filing ID")
    pdf_parser.add_argument("--output", "-o", help="Output file (default: derived name)")
    pdf_parser.add_argument("--owner", help="Owner ID (default: F3115_DEFAULT_OWNER_ID)")
    pdf_parser.add_argument("--template", help="PDF template path")
    pdf_parser.add_argument("--field-map", dest="field_map", help="Field map JSON path")
    pdf_parser.add_argument(
        "--no-statement",
        action="store_true",
        help="Do not append the attachment statement",
    )
    pdf_parser.set_defaults(func=cmd_generate_pdf)

    # verify-map command
    verify_parser = subparsers.add_parser(
        "verify-map", help="Check the field map against the PDF template"
    )
    verify_parser.add_argument("--template", help="PDF template path")
    verify_parser.add_argument("--field-map", dest="field_map", help="Field map JSON path")
    verify_parser.set_defaults(func=cmd_verify_map)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "dcn" and (
        not hasattr(args, "dcn_command") or args.dcn_command is None
    ):
        dcn_parser.print_help()
        return 0

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
