"""
Reconciliation Engine for Binlog / Avro CDC Reconciliation

Streams Avro records against a BinlogIndex. Each record is joined on
(binlog_file, binlog_position) and the matched pair is checked for:
- commit time within a tolerance
- equal GTIDs
- equal change types (INSERT/UPDATE/DELETE)

Index entries never joined by any record are reported once the stream
ends.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple, Union

from src.binlog.events import BinlogEvent, BinlogKey
from src.binlog.values import NANOS_PER_MILLI
from src.reconciliation.avro import AvroDecodeError, AvroRecord
from src.reconciliation.findings import (
    Finding,
    FindingKind,
    Outcome,
    ReconciliationCounts,
    ReconciliationReport,
)
from src.reconciliation.index import BinlogIndex
from src.reconciliation.report import ReportEmitter
from src.utils.config import ReconciliationSettings
from src.utils.jsonl import JsonLinesReader

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Joins a stream of Avro records against a binlog index.

    All run state (consumed keys, counters, findings) lives on the instance;
    construct a new engine per run. The index is only read, so it can be
    shared between runs.
    """

    def __init__(
        self,
        index: BinlogIndex,
        settings: Optional[ReconciliationSettings] = None,
        on_finding: Optional[Callable[[Finding], None]] = None
    ):
        """
        Initialize the engine.

        Args:
            index: Loaded binlog index
            settings: Tolerance and counting policy
            on_finding: Called with each finding as soon as it is made
        """
        self.index = index
        self.settings = settings or ReconciliationSettings()
        self.tolerance_ns = self.settings.tolerance_ms * NANOS_PER_MILLI
        self.on_finding = on_finding

        self.counts = ReconciliationCounts()
        self.findings = []
        self._consumed: Set[BinlogKey] = set()
        self._finished = False

        logger.debug(
            f"Initialized ReconciliationEngine over {len(index)} events, "
            f"tolerance={self.settings.tolerance_ms}ms"
        )

    def _report(self, finding: Finding) -> None:
        self.findings.append(finding)
        if self.on_finding is not None:
            self.on_finding(finding)

    def process(self, record: AvroRecord, line_num: int) -> Outcome:
        """
        Join one record against the index and run the consistency checks.

        Args:
            record: Decoded Avro record
            line_num: Line of the record in the Avro input

        Returns:
            How the record was classified
        """
        if self._finished:
            raise RuntimeError("Engine already finished; create a new engine per run")

        self.counts.processed += 1

        key = record.key
        if key is None:
            self.counts.rejected += 1
            logger.warning(
                f"Skipping Avro record on line {line_num} due to missing "
                f"'binlog_file' or 'binlog_position' in source_metadata"
            )
            return Outcome.REJECTED

        event = self.index.get(key)
        if event is None:
            self.counts.source_only += 1
            self._report(Finding(
                FindingKind.SOURCE_ONLY,
                key,
                line_num,
                {
                    "database": record.source_metadata.database,
                    "table": record.source_metadata.table,
                    "change_type": record.change_type,
                },
            ))
            return Outcome.SOURCE_ONLY

        self._consumed.add(key)
        self.counts.matched += 1

        discrepancies = [
            self._check_timestamp(record, event, key, line_num),
            self._check_gtid(record, event, key, line_num),
            self._check_change_type(record, event, key, line_num),
        ]
        if any(discrepancies):
            return Outcome.MATCHED_WITH_DISCREPANCY
        return Outcome.MATCHED_CONSISTENT

    def process_raw(self, obj: Dict[str, Any], line_num: int) -> Optional[Outcome]:
        """
        Decode and process one JSON object.

        Returns:
            The outcome, or None if the object is not a valid Avro record
        """
        try:
            record = AvroRecord.from_json(obj)
        except AvroDecodeError as e:
            self.counts.malformed += 1
            logger.warning(f"Skipping undecodable Avro record on line {line_num}: {e}")
            return None
        return self.process(record, line_num)

    def _check_timestamp(
        self,
        record: AvroRecord,
        event: BinlogEvent,
        key: BinlogKey,
        line_num: int
    ) -> bool:
        instant = event.commit_instant()
        if instant is None:
            self.counts.mismatched += 1
            self._report(Finding(
                FindingKind.TIMESTAMP_ERROR,
                key,
                line_num,
                {
                    "immediate_commit_timestamp": event.raw.get("immediate_commmit_timestamp", ""),
                    "timestamp": event.raw.get("timestamp", ""),
                    "event_type": event.event_type,
                },
            ))
            return True

        difference_ns = record.source_timestamp * NANOS_PER_MILLI - instant.epoch_nanos
        if abs(difference_ns) <= self.tolerance_ns:
            return False

        self.counts.mismatched += 1
        self._report(Finding(
            FindingKind.TIMESTAMP,
            key,
            line_num,
            {
                "avro_ms": record.source_timestamp,
                "binlog_timestamp": instant.text,
                "event_type": event.event_type,
                "difference_ms": difference_ns / NANOS_PER_MILLI,
            },
        ))
        return True

    def _check_gtid(
        self,
        record: AvroRecord,
        event: BinlogEvent,
        key: BinlogKey,
        line_num: int
    ) -> bool:
        if not record.gtid or not event.gtid_next or record.gtid == event.gtid_next:
            return False

        if self.settings.count_gtid_mismatches:
            self.counts.mismatched += 1
        self._report(Finding(
            FindingKind.GTID,
            key,
            line_num,
            {"avro_gtid": record.gtid, "binlog_gtid": event.gtid_next},
        ))
        return True

    def _check_change_type(
        self,
        record: AvroRecord,
        event: BinlogEvent,
        key: BinlogKey,
        line_num: int
    ) -> bool:
        binlog_change_type = event.change_type
        if not record.change_type or not binlog_change_type:
            return False
        if record.change_type.upper() == binlog_change_type:
            return False

        if self.settings.count_change_type_mismatches:
            self.counts.mismatched += 1
        self._report(Finding(
            FindingKind.CHANGE_TYPE,
            key,
            line_num,
            {
                "avro_change_type": record.change_type,
                "binlog_change_type": binlog_change_type,
                "event_type": event.event_type,
            },
        ))
        return True

    def run(self, records: Iterable[Tuple[int, Union[AvroRecord, Dict[str, Any]]]]) -> None:
        """
        Process a stream of (line_num, record) pairs.

        Records may be decoded AvroRecords or raw JSON objects.
        """
        for line_num, record in records:
            if isinstance(record, AvroRecord):
                self.process(record, line_num)
            else:
                self.process_raw(record, line_num)

    def finish(self) -> ReconciliationReport:
        """
        Report row-mutation events that no record joined and close the run.

        Returns:
            The final report
        """
        if not self._finished:
            for key, event in self.index:
                if key in self._consumed or not event.is_row_mutation:
                    continue
                self.counts.index_only += 1
                self._report(Finding(
                    FindingKind.INDEX_ONLY,
                    key,
                    None,
                    {
                        "event_type": event.event_type,
                        "schema": event.schema,
                        "table": event.table,
                        "timestamp": event.raw.get("timestamp", ""),
                    },
                ))
            self._finished = True

            logger.info(
                f"Reconciliation finished: {self.counts.matched} matched, "
                f"{self.counts.mismatched} mismatched, {self.counts.source_only} Avro-only, "
                f"{self.counts.index_only} binlog-only"
            )

        return ReconciliationReport(
            counts=self.counts,
            findings=list(self.findings),
            indexed_events=len(self.index),
        )


def reconcile_files(
    binlog_path: str,
    avro_path: str,
    settings: Optional[ReconciliationSettings] = None,
    emitter: Optional[ReportEmitter] = None
) -> ReconciliationReport:
    """
    Reconcile a normalized binlog file against an Avro JSON export.

    The binlog file is loaded into memory; the Avro file is streamed one
    line at a time.

    Args:
        binlog_path: Output of the normalize command
        avro_path: avro-tools tojson output
        settings: Reconciliation settings
        emitter: When given, progress and findings are written as they occur

    Returns:
        The final report

    Raises:
        OSError: If either file cannot be read
    """
    def progress(message: str) -> None:
        if emitter is not None:
            emitter.progress(message)
        else:
            logger.info(message)

    progress(f"Loading binlog data from {binlog_path}...")
    index = BinlogIndex.from_file(binlog_path)
    progress(f"Loaded {len(index)} relevant binlog events (DML or XID).")

    progress(f"Loading Avro data from {avro_path} and comparing...")
    engine = ReconciliationEngine(
        index,
        settings,
        on_finding=emitter.emit_finding if emitter is not None else None,
    )

    with open(avro_path, "r", encoding="utf-8", errors="replace") as f:
        reader = JsonLinesReader(f, source=avro_path)
        engine.run(reader)
    engine.counts.malformed += reader.malformed

    if emitter is not None:
        emitter.begin_index_only_section()
    report = engine.finish()

    if emitter is not None:
        emitter.emit_summary(report)
    return report
