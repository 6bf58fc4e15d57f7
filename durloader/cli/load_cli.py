"""
Command-line interface for DUR bulk loading.

Usage:
    durloader load --input <file_path> [options]
    durloader inspect --input <file_path>
    durloader init-db
    durloader health
    durloader generate-sample --output <file_path> --count <n>
"""

import argparse
import json
import signal
import sys

from durloader.batch import CSVReader, LoadCoordinator
from durloader.batch.sample_data import write_sample_csv
from durloader.config.settings import LoaderSettings, load_settings
from durloader.core.errors import StoreConnectionError, StructuralError
from durloader.core.schema import SchemaMapper
from durloader.observability import metrics
from durloader.observability.logger import setup_logger
from durloader.utils.validation import (
    InputValidationError,
    validate_batch_tag,
    validate_file_path,
    validate_positive_int,
)
from durloader.warehouse.connection import ConnectionManager
from durloader.warehouse.schema_mgmt import TargetSchemaManager

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ABORTED = 2


def build_settings(args) -> LoaderSettings:
    """
    Load settings from --config/.env/environment and apply CLI overrides.
    """
    settings = load_settings(args.config, env_file=args.env_file)

    if getattr(args, "batch_size", None) is not None:
        settings.bulk_load.batch_size = validate_positive_int(args.batch_size, "batch_size")
    if getattr(args, "workers", None) is not None:
        settings.bulk_load.max_workers = validate_positive_int(args.workers, "workers", max_value=64)
    if getattr(args, "no_verify", False):
        settings.bulk_load.verify_after_load = False
    if getattr(args, "no_validate", False):
        settings.bulk_load.validate_data = False
    if getattr(args, "log_level", None):
        settings.logging.level = args.log_level.upper()

    return settings


def print_report(report, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
        return

    print("=" * 60)
    print(f"LOAD {report.state.value}")
    print("=" * 60)
    print(f"Source:            {report.source}")
    print(f"Batch tag:         {report.batch_tag}")
    print(f"Rows read:         {report.total_read}")
    print(f"Rows validated:    {report.validated}")
    print(f"Rows rejected:     {report.rejected}")
    print(f"Batches attempted: {report.batches_attempted}")
    print(f"Batches failed:    {report.batches_failed}")
    print(f"Rows inserted:     {report.rows_inserted}")
    if report.verified_count is not None:
        print(f"Rows verified:     {report.verified_count}")
    if report.duration_seconds is not None:
        print(f"Duration:          {report.duration_seconds:.2f}s")

    for error in report.errors[:20]:
        print(f"  line {error.line_number}: {'; '.join(error.reasons)}")
    if len(report.errors) > 20:
        print(f"  ... {len(report.errors) - 20} more rejected rows")
    for failure in report.batch_failures:
        print(f"  batch {failure.sequence} (lines {failure.first_line}-{failure.last_line}): {failure.error}")
    for warning in report.warnings:
        print(f"  warning: {warning}")

    print("=" * 60)
    print(report.summary())


def load_command(args) -> int:
    """
    Execute a load run.

    Returns:
        2 if the run aborted, 1 if it had rejections or failed batches and
        --fail-on-rejections was given, 0 otherwise
    """
    settings = build_settings(args)
    logger = setup_logger("durloader", settings.logging.level, settings.logging.format)

    input_path = validate_file_path(args.input, "input", must_exist=True)
    batch_tag = validate_batch_tag(args.batch_tag) if args.batch_tag else None

    if args.metrics_port:
        metrics.start_metrics_server(validate_positive_int(args.metrics_port, "metrics_port", max_value=65535))

    manager = ConnectionManager.from_settings(settings)
    coordinator = LoadCoordinator.from_settings(settings, connection_manager=manager, logger=logger)

    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: coordinator.cancel())
    try:
        report = coordinator.run(input_path, batch_tag=batch_tag)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        manager.close()

    print_report(report, args.json)

    if report.aborted:
        return EXIT_ABORTED
    if args.fail_on_rejections and (report.rejected or report.batches_failed):
        return EXIT_FAILURES
    return EXIT_OK


def inspect_command(args) -> int:
    """Describe a source file and how its header maps."""
    settings = build_settings(args)
    input_path = validate_file_path(args.input, "input", must_exist=True)

    csv = settings.csv
    reader = CSVReader(csv.delimiter, csv.has_header, csv.encoding, csv.ignore_blank_lines)
    info = reader.inspect_file(input_path)

    result = info.model_dump()
    if csv.has_header:
        try:
            mapper = SchemaMapper(info.headers, strict=csv.strict_headers)
            result["mapping"] = {field.value: info.headers[i] for field, i in mapper.mapping.items()}
            result["unrecognized"] = mapper.unrecognized
        except StructuralError as e:
            result["mapping_error"] = str(e)

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        for key, value in result.items():
            print(f"{key}: {value}")

    return EXIT_ABORTED if "mapping_error" in result else EXIT_OK


def init_db_command(args) -> int:
    """Create the target table and indexes."""
    settings = build_settings(args)
    logger = setup_logger("durloader", settings.logging.level, settings.logging.format)
    store = TargetSchemaManager()

    with ConnectionManager.from_settings(settings, logger=logger) as manager:
        try:
            with manager.acquire(probe=True) as handle:
                store.ensure_table(handle)
                missing = store.missing_columns(handle)
        except StoreConnectionError as e:
            logger.error(f"Cannot initialize database: {e}")
            return EXIT_ABORTED

    if missing:
        print(f"Table {store.table.name} exists but is missing column(s): {', '.join(missing)}")
        return EXIT_ABORTED

    print(f"Table {store.table.name} is ready (schema version {store.table.version})")
    return EXIT_OK


def health_command(args) -> int:
    """Probe the database."""
    settings = build_settings(args)
    setup_logger("durloader", settings.logging.level, settings.logging.format)

    with ConnectionManager.from_settings(settings) as manager:
        status = manager.check_health()

    print(json.dumps(status, indent=2))
    return EXIT_OK if status["healthy"] else EXIT_ABORTED


def generate_sample_command(args) -> int:
    """Write a synthetic DUR file."""
    count = validate_positive_int(args.count, "count", max_value=10_000_000)
    output = validate_file_path(args.output, "output")
    batch_tag = validate_batch_tag(args.batch_tag) if args.batch_tag else None

    written = write_sample_csv(
        output,
        count,
        quarter=args.quarter,
        year=args.year,
        batch_tag=batch_tag,
        seed=args.seed,
    )
    print(f"Wrote {written} sample rows to {output}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="durloader",
        description="Bulk loader for quarterly DUR claim files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load a CSV file
  durloader load --input data/dur_2024_q1.csv

  # Load with a fixed batch tag and four writer threads
  durloader load --input data/dur_2024_q1.csv --batch-tag DUR_2024Q1 --workers 4

  # Check how a file's header maps before loading it
  durloader inspect --input data/dur_2024_q1.csv

  # Generate 10,000 sample rows
  durloader generate-sample --output data/sample.csv --count 10000
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to YAML settings file")
    common.add_argument("--env-file", default=".env", help="Path to .env file (default: .env)")
    common.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    load_parser = subparsers.add_parser("load", parents=[common], help="Load a DUR file")
    load_parser.add_argument("--input", required=True, help="Path to input file")
    load_parser.add_argument("--batch-size", type=int, help="Rows per bulk insert")
    load_parser.add_argument("--batch-tag", help="Tag stored in batch_id for every row")
    load_parser.add_argument("--workers", type=int, help="Concurrent batch writers (default: 1)")
    load_parser.add_argument("--no-verify", action="store_true", help="Skip post-load row count check")
    load_parser.add_argument("--no-validate", action="store_true", help="Skip constraint validation")
    load_parser.add_argument(
        "--fail-on-rejections",
        action="store_true",
        help="Exit with status 1 when rows were rejected or batches failed",
    )
    load_parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    load_parser.add_argument("--metrics-port", type=int, help="Serve Prometheus metrics on this port during the run")

    inspect_parser = subparsers.add_parser("inspect", parents=[common], help="Describe a DUR file")
    inspect_parser.add_argument("--input", required=True, help="Path to input file")
    inspect_parser.add_argument("--json", action="store_true", help="Print as JSON")

    subparsers.add_parser("init-db", parents=[common], help="Create the target table")
    subparsers.add_parser("health", parents=[common], help="Check database connectivity")

    sample_parser = subparsers.add_parser("generate-sample", help="Write a synthetic DUR file")
    sample_parser.add_argument("--output", required=True, help="Path of the file to write")
    sample_parser.add_argument("--count", type=int, default=100, help="Number of rows (default: 100)")
    sample_parser.add_argument("--quarter", choices=["Q1", "Q2", "Q3", "Q4"], help="Quarter (default: current)")
    sample_parser.add_argument("--year", type=int, help="Year (default: current)")
    sample_parser.add_argument("--batch-tag", help="Batch tag written into every row")
    sample_parser.add_argument("--seed", type=int, help="Random seed for reproducible output")

    return parser


COMMANDS = {
    "load": load_command,
    "inspect": inspect_command,
    "init-db": init_db_command,
    "health": health_command,
    "generate-sample": generate_sample_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ABORTED

    try:
        return COMMANDS[args.command](args)
    except (InputValidationError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ABORTED
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())
