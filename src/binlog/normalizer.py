"""
Binlog Event Normalizer

Turns the text rendering of a MySQL binary log into normalized event
dicts, one per event block:

    === WriteRowsEventV2 ===
    Date: 2024-01-01 00:00:00
    Log position: 500
    Event size: 52
    Table: shop.orders
    --

Field names are normalized, timestamps are re-encoded as RFC 3339 and
numeric fields are parsed. Values that fail to parse are kept as strings
and reported as warnings; the stream never aborts on bad input.
"""

import logging
import os
import re
from typing import Any, Dict, Iterable, Iterator, Optional

from src.binlog.events import match_row_mutation
from src.binlog.values import (
    RawString,
    parse_commit_timestamp,
    parse_date,
    parse_int,
)

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r'^=== (.+?) ===$')
KEY_VALUE_RE = re.compile(r'^([^:]+): (.+)$')
BLOCK_SEPARATOR = "--"

INTEGER_FIELDS = frozenset({
    "Table", "Schema", "Query", "XID", "GTID_NEXT", "Commit flag",
    "LAST_COMMITTED", "SEQUENCE_NUMBER", "Transaction length",
    "Immediate server version", "Orignal server version", "TableID", "Flags",
    "Column count", "Slave proxy ID", "Execution time", "Error code",
    "server_version", "version",
})

# Misspellings are part of the upstream dump format
COMMIT_TIMESTAMP_FIELDS = frozenset({
    "Immediate commmit timestamp",
    "Orignal commmit timestamp",
})


def normalize_key(key: str) -> str:
    """Lower-case a field name and join its words with underscores."""
    return key.replace(" ", "_").lower()


def event_type_from_header(title: str) -> str:
    """
    Derive the event type from a block header title.

    Row-mutation types are matched anywhere in the title; anything else
    is passed through with a trailing "Event" removed.
    """
    matched = match_row_mutation(title)
    if matched:
        return matched
    if title.endswith("Event"):
        return title[:-len("Event")]
    return title


class EventNormalizer:
    """
    Single-pass parser from binlog text lines to normalized events.

    Every emitted event carries binlog_file, the basename of the file the
    text was rendered from.
    """

    def __init__(self, binlog_file: str):
        """
        Initialize the normalizer.

        Args:
            binlog_file: Path or name of the originating binlog file
        """
        self.binlog_file = os.path.basename(binlog_file)
        self.events_emitted = 0
        self.warnings = 0
        logger.debug(f"Initialized EventNormalizer for {self.binlog_file}")

    def normalize(self, lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
        """
        Parse lines into normalized events.

        Args:
            lines: Text lines, with or without line terminators

        Yields:
            One dict per event block, in input order
        """
        current: Optional[Dict[str, Any]] = None

        for line_num, raw_line in enumerate(lines, start=1):
            line = raw_line.strip()

            if not line or line == BLOCK_SEPARATOR:
                continue

            header = HEADER_RE.match(line)
            if header:
                if current is not None:
                    yield self._finish(current)
                current = {"event_type": event_type_from_header(header.group(1))}
                continue

            if current is None:
                continue

            pair = KEY_VALUE_RE.match(line)
            if pair:
                self._apply_field(
                    current,
                    pair.group(1).strip(),
                    pair.group(2).strip(),
                    line_num,
                )

        if current is not None:
            yield self._finish(current)

    def _finish(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event["binlog_file"] = self.binlog_file
        self.events_emitted += 1
        return event

    def _warn(self, message: str) -> None:
        self.warnings += 1
        logger.warning(message)

    def _apply_field(self, event: Dict[str, Any], key: str, value: str, line_num: int) -> None:
        normalized_key = normalize_key(key)

        if key == "Date":
            parsed = parse_date(value)
            if isinstance(parsed, RawString):
                self._warn(
                    f"Failed to parse 'Date' timestamp '{value}' on line {line_num} "
                    f"of {self.binlog_file}"
                )
                event[normalized_key] = value
            else:
                event["timestamp"] = parsed.to_json()

        elif key == "Log position":
            parsed = parse_int(value)
            if isinstance(parsed, RawString):
                self._warn(
                    f"Failed to parse 'Log position' '{value}' on line {line_num} "
                    f"of {self.binlog_file}"
                )
            event["log_position"] = parsed.to_json()

        elif key in INTEGER_FIELDS:
            event[normalized_key] = parse_int(value).to_json()

        elif key in COMMIT_TIMESTAMP_FIELDS:
            parsed = parse_commit_timestamp(value)
            if isinstance(parsed, RawString):
                self._warn(
                    f"Failed to parse commit timestamp '{value}' for key '{key}' "
                    f"on line {line_num} of {self.binlog_file}"
                )
            event[normalized_key] = parsed.to_json()

        elif key == "Event type":
            matched = match_row_mutation(value)
            if matched:
                event["event_type"] = matched

        else:
            event[normalized_key] = parse_int(value).to_json()
