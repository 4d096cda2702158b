"""Command line interface for the legacy dump migration."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .extractors.tokenizer import DumpParseError
from .extractors.dump_extractor import SchemaDriftError
from .models.migration import MigrationConfig, MigrationRun, MigrationStatus
from .orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> MigrationConfig:
    """Config file values overridden by explicit command line options."""
    config_data: Dict[str, Any] = {}
    if getattr(args, "config", None):
        with open(args.config, encoding="utf-8") as f:
            config_data = json.load(f)

    overrides = {
        "dump_path": getattr(args, "dump", None),
        "identity_map_path": getattr(args, "identity_map", None),
        "table_prefix": getattr(args, "prefix", None),
        "mapping_file": getattr(args, "mapping", None),
        "kinds": getattr(args, "kinds", None),
        "output_dir": getattr(args, "output_dir", None),
        "encoding": getattr(args, "encoding", None),
    }
    for key, value in overrides.items():
        if value is not None:
            config_data[key] = value

    config = MigrationConfig.from_dict(config_data)
    if getattr(args, "dry_run", False):
        config.dry_run = True
    if getattr(args, "no_report", False):
        config.save_report = False
    if getattr(args, "stop_on_error", False):
        config.continue_on_error = False
    if getattr(args, "max_errors", None) is not None:
        config.max_errors = args.max_errors
    return config


def create_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to a JSON migration config file")
    common.add_argument("--dump", help="Path to the legacy SQL dump")
    common.add_argument("--prefix", help="Legacy table name prefix (default: tfkz_)")
    common.add_argument("--mapping", help="Projection catalog JSON to use instead of the built-in one")
    common.add_argument("--encoding", help="Dump file encoding (default: utf-8)")
    common.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    parser = argparse.ArgumentParser(
        prog="legacy-migrate",
        description="Legacy Migration Tool - Move a legacy MySQL dump into the PostgreSQL schema"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run a pass
    run_parser = subparsers.add_parser("run", parents=[common], help="Run a migration pass")
    run_parser.add_argument("--kinds", help="Comma-separated entity kinds (default: all)")
    run_parser.add_argument("--identity-map", help="Identity map JSON (default: id-mapping.json)")
    run_parser.add_argument("--output-dir", help="Directory for pass reports (default: ./data)")
    run_parser.add_argument("--dry-run", action="store_true", help="Look up rows but insert nothing")
    run_parser.add_argument("--stop-on-error", action="store_true", help="Stop after the first failed kind")
    run_parser.add_argument("--max-errors", type=int, help="Abort a kind after this many failed rows")
    run_parser.add_argument("--no-report", action="store_true", help="Do not write a JSON report")

    # Dependency order
    plan_parser = subparsers.add_parser("plan", parents=[common], help="Show the migration order")
    plan_parser.add_argument("--kinds", help="Comma-separated entity kinds (default: all)")

    # Dump overview
    subparsers.add_parser("inspect", parents=[common], help="List dump tables, row counts and drift")

    # Preview projection
    preview_parser = subparsers.add_parser("preview", parents=[common], help="Preview projected rows")
    preview_parser.add_argument("--kind", required=True, help="Entity kind to preview")
    preview_parser.add_argument("--limit", type=int, default=5, help="Number of rows (default: 5)")
    preview_parser.add_argument("--identity-map", help="Identity map JSON to resolve references against")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    load_dotenv()
    parser = create_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    commands = {
        "run": run_migration,
        "plan": run_plan,
        "inspect": run_inspect,
        "preview": run_preview,
    }
    if args.command not in commands:
        parser.print_help()
        return 2

    try:
        return commands[args.command](args)
    except (OSError, ValueError, KeyError, DumpParseError, SchemaDriftError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


def run_migration(args) -> int:
    """Run a migration pass."""
    config = build_config(args)
    orchestrator = MigrationOrchestrator(config)
    result = orchestrator.run_pass()
    print_run_summary(result)
    return 1 if result.failed_steps or result.status == MigrationStatus.FAILED else 0


def print_run_summary(result: MigrationRun) -> None:
    print("\n" + "=" * 60)
    print("MIGRATION PASS COMPLETE" + (" (DRY RUN)" if result.dry_run else ""))
    print("=" * 60)
    print(f"Status: {result.status.value}")
    for step in result.steps:
        print(
            f"  {step.entity:<14} inserted={step.records_succeeded:<6} "
            f"skipped={step.records_skipped:<6} failed={step.records_failed:<6} [{step.status.value}]"
        )
    print(f"Records Processed: {result.total_records_processed}")
    print(f"Inserted: {result.total_records_succeeded}")
    print(f"Skipped: {result.total_records_skipped}")
    print(f"Failed: {result.total_records_failed}")

    unresolved = result.unresolved_references
    if unresolved:
        print(f"\nUnresolved references: {len(unresolved)}")
        for ref in unresolved[:20]:
            print(f"  {ref['table']}.{ref['column']} -> {ref['kind']} {ref['legacy_id']} (row {ref['record_id']})")
        if len(unresolved) > 20:
            print(f"  ... and {len(unresolved) - 20} more")

    if result.identity_conflicts:
        print(f"\nIdentity conflicts: {len(result.identity_conflicts)}")
        for conflict in result.identity_conflicts:
            print(
                f"  {conflict['kind']} {conflict['legacy_id']}: kept {conflict['existing']}, "
                f"rejected {conflict['proposed']}"
            )

    for error in result.errors:
        print(f"\nError: {error.get('table', 'pass')}: {error['error']}")

    print(f"\nIdentity map: {result.identity_map_sizes} (saved: {result.identity_map_saved})")
    if result.duration_seconds:
        print(f"Duration: {result.duration_seconds:.2f} seconds")


def run_plan(args) -> int:
    """Print the dependency order of the requested kinds."""
    config = build_config(args)
    orchestrator = MigrationOrchestrator(config)

    print("\n=== Migration Order ===")
    for i, kind in enumerate(orchestrator.plan(), 1):
        projection = orchestrator.catalog.get(kind)
        depends = ", ".join(k.value for k in projection.dependencies) or "-"
        print(
            f"{i:>2}. {kind.value:<14} {orchestrator.legacy_table_name(projection)} -> "
            f"{projection.target_table} ({projection.stage.value}; depends on: {depends})"
        )
    return 0


def run_inspect(args) -> int:
    """List the dump's tables with row counts and column drift."""
    config = build_config(args)
    orchestrator = MigrationOrchestrator(config)
    report = orchestrator.inspect_dump()

    print(f"\n=== {report['dump_path']} ===")
    failed = False
    for table in report["tables"]:
        if table["error"]:
            failed = True
            status = f"ERROR: {table['error']}"
        elif table["rows"] is None or (table["rows"] == 0 and table["create_table_columns"] is None):
            status = "absent"
        else:
            status = f"{table['rows']} rows"
        drift = " DRIFT" if table["drift"] else ""
        print(f"  {table['legacy_table']:<22} {table['kind']:<14} {status}{drift}")

    if report["unmapped_tables"]:
        print(f"\nTables without a projection: {', '.join(report['unmapped_tables'])}")
    return 1 if failed else 0


def run_preview(args) -> int:
    """Preview projected rows of one kind."""
    config = build_config(args)
    orchestrator = MigrationOrchestrator(config)
    records = orchestrator.preview(args.kind, limit=args.limit)

    if not records:
        print(f"No rows found for {args.kind}")
        return 0

    for record in records:
        print(json.dumps(record.data, indent=2, default=str, ensure_ascii=False))
        for ref in record.unresolved_references:
            print(f"  unresolved: {ref.column} -> {ref.kind} {ref.legacy_id}")
        if record.missing_required:
            print(f"  missing required: {', '.join(record.missing_required)}")
        print("-" * 40)
    return 0


if __name__ == "__main__":
    sys.exit(main())
