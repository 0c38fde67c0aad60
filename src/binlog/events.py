"""
Binlog Event Model

Event-type taxonomy, change-type inference and the typed view of a
normalized binlog event used by the reconciliation index.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Optional

from src.binlog.values import (
    ParsedTimestamp,
    RawString,
    TimestampValue,
    parse_rfc3339,
)

WRITE_ROWS = "WriteRowsEventV2"
UPDATE_ROWS = "UpdateRowsEventV2"
DELETE_ROWS = "DeleteRowsEventV2"
XID = "XID"
GTID = "GTID"

ROW_MUTATION_TYPES = (WRITE_ROWS, UPDATE_ROWS, DELETE_ROWS)

# Suffixes per change type, current spelling first, then legacy ones
CHANGE_TYPE_SUFFIXES = {
    "INSERT": ("WriteRowsEventV2", "WriteRowsEventV1", "WriteRowsV2", "WriteRowsV1"),
    "UPDATE": ("UpdateRowsEventV2", "UpdateRowsEventV1", "UpdateRowsV2", "UpdateRowsV1"),
    "DELETE": ("DeleteRowsEventV2", "DeleteRowsEventV1", "DeleteRowsV2", "DeleteRowsV1"),
}


def match_row_mutation(text: str) -> Optional[str]:
    """
    Find a row-mutation event type named anywhere in text.

    Args:
        text: Header title or "Event type" value

    Returns:
        The canonical event type, or None if text names none
    """
    for event_type in ROW_MUTATION_TYPES:
        if event_type in text:
            return event_type
    return None


def infer_change_type(event_type: str) -> Optional[str]:
    """
    Map an event type to INSERT, UPDATE or DELETE by its suffix.

    Returns:
        The change type, or None for non row-mutation events
    """
    for change_type, suffixes in CHANGE_TYPE_SUFFIXES.items():
        if event_type.endswith(suffixes):
            return change_type
    return None


def is_row_mutation(event_type: str) -> bool:
    return infer_change_type(event_type) is not None


def is_indexable(event_type: str) -> bool:
    """Row mutations and transaction-boundary (XID) events are indexed."""
    return event_type == XID or is_row_mutation(event_type)


class BinlogKey(NamedTuple):
    """Composite join key shared by binlog events and Avro records."""
    binlog_file: str
    log_position: int

    def __str__(self) -> str:
        return f"{self.binlog_file}:{self.log_position}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _timestamp(value: Any) -> Optional[TimestampValue]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        return RawString(str(value))
    return parse_rfc3339(value)


@dataclass
class BinlogEvent:
    """Typed view of a normalized binlog event."""
    event_type: str
    binlog_file: str
    log_position: int
    timestamp: Optional[TimestampValue] = None
    immediate_commit_timestamp: Optional[TimestampValue] = None
    table: str = ""
    schema: str = ""
    gtid_next: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def key(self) -> BinlogKey:
        return BinlogKey(self.binlog_file, self.log_position)

    @property
    def change_type(self) -> Optional[str]:
        return infer_change_type(self.event_type)

    @property
    def is_row_mutation(self) -> bool:
        return self.change_type is not None

    def commit_instant(self) -> Optional[ParsedTimestamp]:
        """
        Commit instant of the preferred timestamp field.

        The nanosecond commit timestamp is preferred whenever present; the
        second-precision Date is used only when it is absent. None when the
        preferred field did not parse or neither is present.
        """
        preferred = self.immediate_commit_timestamp
        if preferred is None:
            preferred = self.timestamp
        if isinstance(preferred, ParsedTimestamp):
            return preferred
        return None

    @classmethod
    def from_dict(cls, event: Dict[str, Any], log_position: int) -> "BinlogEvent":
        """
        Build from a normalized event dict.

        Args:
            event: Normalized event
            log_position: Already validated log position
        """
        return cls(
            event_type=_text(event.get("event_type")),
            binlog_file=_text(event.get("binlog_file")),
            log_position=log_position,
            timestamp=_timestamp(event.get("timestamp")),
            immediate_commit_timestamp=_timestamp(event.get("immediate_commmit_timestamp")),
            table=_text(event.get("table")),
            schema=_text(event.get("schema")),
            gtid_next=_text(event.get("gtid_next")),
            raw=event,
        )
