"""
Reconciliation Report Emitter

Prints one detail block per finding as it is found, then the summary
counters and the verdict.
"""

import sys
import logging
from typing import IO, List, Optional

from src.binlog.values import format_epoch_millis
from src.reconciliation.findings import Finding, FindingKind, ReconciliationReport

logger = logging.getLogger(__name__)

INDEX_ONLY_SECTION = "--- Unmatched Binlog DML Events (BINLOG_ONLY) ---"


def format_finding(finding: Finding) -> List[str]:
    """
    Render a finding as report lines.

    Args:
        finding: Finding to render

    Returns:
        Lines without terminators
    """
    d = finding.details
    key = finding.key
    line = finding.line

    if finding.kind is FindingKind.SOURCE_ONLY:
        return [
            f"AVRO_ONLY_BINLOG_KEY: Line {line}. Key {key} "
            f"(DB: {d.get('database', '')}, Table: {d.get('table', '')}, "
            f"Type: {d.get('change_type', '')}) -> No matching binlog event found."
        ]

    if finding.kind is FindingKind.TIMESTAMP:
        return [
            f"MISMATCH (Timestamp): Line {line}. Key {key}",
            f"  Avro TS: {format_epoch_millis(d['avro_ms'])} (Unix MS: {d['avro_ms']})",
            f"  Binlog TS: {d['binlog_timestamp']} (Event Type: {d['event_type']})",
            f"  Difference: {d['difference_ms']:.3f} ms",
        ]

    if finding.kind is FindingKind.TIMESTAMP_ERROR:
        return [
            f"ERROR: Line {line}. Key {key}. Could not parse binlog timestamp "
            f"'{d.get('immediate_commit_timestamp', '')}' or '{d.get('timestamp', '')}'."
        ]

    if finding.kind is FindingKind.GTID:
        return [
            f"MISMATCH (GTID): Line {line}. Key {key}",
            f"  Avro GTID: {d['avro_gtid']}",
            f"  Binlog GTID_NEXT: {d['binlog_gtid']}",
        ]

    if finding.kind is FindingKind.CHANGE_TYPE:
        return [
            f"MISMATCH (ChangeType): Line {line}. Key {key}",
            f"  Avro ChangeType: {d['avro_change_type']}",
            f"  Inferred Binlog ChangeType (from {d['event_type']}): {d['binlog_change_type']}",
        ]

    if finding.kind is FindingKind.INDEX_ONLY:
        return [
            f"BINLOG_ONLY (DML): Key {key} (Event: {d.get('event_type', '')}, "
            f"Schema: {d.get('schema', '')}, Table: {d.get('table', '')}, "
            f"TS: {d.get('timestamp', '')}) -> No matching Avro record found."
        ]

    raise ValueError(f"Unknown finding kind: {finding.kind}")


class ReportEmitter:
    """Writes reconciliation progress, findings and summary as text."""

    def __init__(self, stream: Optional[IO[str]] = None):
        """
        Initialize the emitter.

        Args:
            stream: Output stream (defaults to stdout at write time)
        """
        self._stream = stream

    @property
    def stream(self) -> IO[str]:
        return self._stream if self._stream is not None else sys.stdout

    def _write(self, text: str = "") -> None:
        self.stream.write(text + "\n")

    def progress(self, message: str) -> None:
        self._write(message)

    def emit_finding(self, finding: Finding) -> None:
        for text in format_finding(finding):
            self._write(text)

    def begin_index_only_section(self) -> None:
        self._write()
        self._write(INDEX_ONLY_SECTION)

    def emit_summary(self, report: ReconciliationReport) -> None:
        """Print the counters and the verdict."""
        counts = report.counts

        if counts.index_only == 0:
            self._write("No DML binlog events found without a matching Avro record.")

        self._write()
        self._write("--- Comparison Summary ---")
        self._write(f"Total Avro Records Processed: {counts.processed}")
        self._write(f"Total Matched by Binlog Key: {counts.matched}")
        self._write(f"Total Mismatches (within matched set): {counts.mismatched}")
        self._write(f"Avro Records with no Binlog Event match (by key): {counts.source_only}")
        self._write(f"Binlog DML Events with no Avro Record match (by key): {counts.index_only}")
        if counts.rejected:
            self._write(f"Avro Records without a binlog key (excluded): {counts.rejected}")
        if counts.malformed:
            self._write(f"Malformed Avro lines skipped: {counts.malformed}")

        self._write()
        if report.is_consistent:
            self._write(
                f"CONCLUSION: {report.verdict} - all Avro records have matching binlog "
                f"events, and timestamps/metadata agree."
            )
        else:
            self._write(f"CONCLUSION: {report.verdict} during comparison.")

        logger.debug(f"Emitted summary: {counts.to_dict()}")
