"""
Reconciliation Module for Binlog / Avro CDC Pipeline

This module reconciles normalized MySQL binlog events with the Avro export
of a streaming pipeline, detecting missing records and metadata
disagreements.

Main components:
- avro: Avro JSON record model with wrapped union primitives
- index: In-memory binlog event index keyed by (file, position)
- engine: Streaming join and consistency checks
- report: Text rendering of findings and the summary

Usage:
    from src.reconciliation import BinlogIndex, ReconciliationEngine, ReportEmitter
    from src.utils.jsonl import JsonLinesReader

    index = BinlogIndex.from_file("binlog_metadata.json")
    emitter = ReportEmitter()
    engine = ReconciliationEngine(index, on_finding=emitter.emit_finding)
    with open("avro_rows.json") as f:
        engine.run(JsonLinesReader(f))
    emitter.emit_summary(engine.finish())
"""

from src.reconciliation.avro import AvroDecodeError, AvroRecord
from src.reconciliation.engine import ReconciliationEngine, reconcile_files
from src.reconciliation.findings import (
    Finding,
    FindingKind,
    Outcome,
    ReconciliationCounts,
    ReconciliationReport,
)
from src.reconciliation.index import BinlogIndex
from src.reconciliation.report import ReportEmitter

__all__ = [
    "AvroDecodeError",
    "AvroRecord",
    "BinlogIndex",
    "Finding",
    "FindingKind",
    "Outcome",
    "ReconciliationCounts",
    "ReconciliationEngine",
    "ReconciliationReport",
    "ReportEmitter",
    "reconcile_files",
]

__version__ = "1.0.0"
