"""
Binlog / Avro Reconciliation CLI

Commands:
    normalize <binlog_file>
        Read the text rendering of a binlog from stdin and write normalized
        events to stdout, one JSON object per line.

    reconcile <binlog_json> <avro_json>
        Compare normalized binlog events with the Avro export. Findings and
        the summary go to stdout, diagnostics to stderr. Finding
        discrepancies is not a failure: the exit code is 0.

Usage:
    mysqlbinlog-text mysql-bin.000001 | binlog-reconcile normalize mysql-bin.000001 >> binlog_metadata.json
    binlog-reconcile reconcile binlog_metadata.json avro_rows.json
    binlog-reconcile reconcile binlog_metadata.json avro_rows.json --format json --tolerance-ms 250
"""

import io
import sys
import json
import time
import argparse
import logging
from typing import IO, List, Optional

from src.binlog.normalizer import EventNormalizer
from src.monitoring.metrics import ReconciliationMetrics
from src.reconciliation.engine import reconcile_files
from src.reconciliation.report import ReportEmitter
from src.utils.config import OUTPUT_FORMATS, ConfigError, ReconciliationSettings, load_settings
from src.utils.correlation import CorrelationContext
from src.utils.jsonl import write_json_line
from src.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="binlog-reconcile",
        description="Reconcile MySQL binlog events with a CDC pipeline's Avro export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Normalize command
    normalize_parser = subparsers.add_parser(
        "normalize", help="Convert binlog text from stdin to JSON lines on stdout"
    )
    normalize_parser.add_argument(
        "binlog_file", help="Binlog file the text was rendered from (its basename is recorded)"
    )
    normalize_parser.add_argument("--metrics-file", help="Write Prometheus metrics to this file")

    # Reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Compare normalized binlog events with Avro records"
    )
    reconcile_parser.add_argument("binlog_json", help="Output of the normalize command")
    reconcile_parser.add_argument("avro_json", help="Avro export converted to JSON lines")
    reconcile_parser.add_argument("--config", help="YAML settings file")
    reconcile_parser.add_argument(
        "--tolerance-ms", type=int, help="Allowed commit-time difference (default 100)"
    )
    reconcile_parser.add_argument(
        "--count-gtid-mismatches", action="store_true", default=None,
        help="Add GTID mismatches to the mismatch total"
    )
    reconcile_parser.add_argument(
        "--count-change-type-mismatches", action="store_true", default=None,
        help="Add change-type mismatches to the mismatch total"
    )
    reconcile_parser.add_argument("--format", dest="output_format", choices=OUTPUT_FORMATS)
    reconcile_parser.add_argument("--metrics-file", help="Write Prometheus metrics to this file")

    return parser


def _lenient_stdin() -> IO[str]:
    """Stdin with undecodable bytes replaced by U+FFFD instead of raising."""
    stdin = sys.stdin
    if isinstance(stdin, io.TextIOWrapper):
        stdin.reconfigure(errors="replace")
    return stdin


def run_normalize(args: argparse.Namespace) -> int:
    """Normalize stdin to stdout."""
    start = time.monotonic()
    normalizer = EventNormalizer(args.binlog_file)

    for event in normalizer.normalize(_lenient_stdin()):
        write_json_line(sys.stdout, event)
    sys.stdout.flush()

    duration = time.monotonic() - start
    logger.info(
        f"Normalized {normalizer.events_emitted} events from {normalizer.binlog_file} "
        f"({normalizer.warnings} warnings)",
        extra={"binlog_file": normalizer.binlog_file, "duration": duration}
    )

    if args.metrics_file:
        metrics = ReconciliationMetrics()
        metrics.record_normalize_run(normalizer.events_emitted, normalizer.warnings, duration)
        metrics.write(args.metrics_file)
    return 0


def resolve_settings(args: argparse.Namespace) -> ReconciliationSettings:
    """
    Combine config file, environment and flags.

    Raises:
        ConfigError: If any source is invalid
    """
    settings = load_settings(args.config)
    return settings.with_overrides(
        tolerance_ms=args.tolerance_ms,
        count_gtid_mismatches=args.count_gtid_mismatches,
        count_change_type_mismatches=args.count_change_type_mismatches,
        output_format=args.output_format,
        metrics_file=args.metrics_file,
    )


def run_reconcile(args: argparse.Namespace) -> int:
    """Reconcile the two inputs and print the report."""
    settings = resolve_settings(args)
    start = time.monotonic()

    emitter = ReportEmitter() if settings.output_format == "text" else None
    report = reconcile_files(args.binlog_json, args.avro_json, settings, emitter)

    if emitter is not None:
        emitter.progress("")
        emitter.progress("Comparison complete.")
    else:
        print(json.dumps(report.to_dict(), indent=2))

    duration = time.monotonic() - start
    logger.info(
        f"Reconciliation completed in {duration:.2f}s: {report.verdict}",
        extra={"duration": duration, "counts": report.counts.to_dict()}
    )

    if settings.metrics_file:
        metrics = ReconciliationMetrics()
        metrics.record_reconciliation_run(report, duration)
        metrics.write(settings.metrics_file)
    return 0


COMMANDS = {
    "normalize": run_normalize,
    "reconcile": run_reconcile,
}


def record_failure(args: argparse.Namespace) -> None:
    """Write a failed-run metric if a metrics file was requested."""
    if not args.metrics_file:
        return
    metrics = ReconciliationMetrics()
    metrics.record_failure(args.command)
    try:
        metrics.write(args.metrics_file)
    except OSError as e:
        logger.error(f"Failed to write metrics to {args.metrics_file}: {e}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help(sys.stderr)
        return 1

    setup_logging(verbose=args.verbose)

    with CorrelationContext():
        try:
            return COMMANDS[args.command](args)
        except ConfigError as e:
            logger.error(f"Invalid configuration: {e}")
            record_failure(args)
            return 1
        except OSError as e:
            logger.error(f"Error: {e}", exc_info=args.verbose)
            record_failure(args)
            return 1


if __name__ == "__main__":
    sys.exit(main())
