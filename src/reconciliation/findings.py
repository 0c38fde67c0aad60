"""
Reconciliation Findings

Result types shared by the reconciliation engine and the report emitter.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from src.binlog.events import BinlogKey


class FindingKind(Enum):
    """Kinds of reportable findings."""
    SOURCE_ONLY = "source_only"
    INDEX_ONLY = "index_only"
    TIMESTAMP = "timestamp"
    TIMESTAMP_ERROR = "timestamp_error"
    GTID = "gtid"
    CHANGE_TYPE = "change_type"


class Outcome(Enum):
    """Classification of one streamed Avro record."""
    MATCHED_CONSISTENT = "matched_consistent"
    MATCHED_WITH_DISCREPANCY = "matched_with_discrepancy"
    SOURCE_ONLY = "source_only"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Finding:
    """
    One discrepancy.

    Attributes:
        kind: What disagreed
        key: Join key of the record or event
        line: Line of the Avro input, None for index-only findings
        details: Values that were compared, for the report
    """
    kind: FindingKind
    key: BinlogKey
    line: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "binlog_file": self.key.binlog_file,
            "log_position": self.key.log_position,
            "line": self.line,
            "details": dict(self.details),
        }


@dataclass
class ReconciliationCounts:
    """Running counters for one reconciliation run."""
    processed: int = 0
    matched: int = 0
    mismatched: int = 0
    source_only: int = 0
    index_only: int = 0
    rejected: int = 0
    malformed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


CONSISTENT = "consistent"
DISCREPANCIES_FOUND = "discrepancies found"


@dataclass
class ReconciliationReport:
    """Counters and findings of a finished run."""
    counts: ReconciliationCounts
    findings: List[Finding] = field(default_factory=list)
    indexed_events: int = 0

    @property
    def is_consistent(self) -> bool:
        return (
            self.counts.mismatched == 0
            and self.counts.source_only == 0
            and self.counts.index_only == 0
        )

    @property
    def verdict(self) -> str:
        return CONSISTENT if self.is_consistent else DISCREPANCIES_FOUND

    def findings_of(self, kind: FindingKind) -> List[Finding]:
        return [f for f in self.findings if f.kind is kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verdict": self.verdict,
            "indexed_events": self.indexed_events,
            "counts": self.counts.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
        }
