"""
Binlog Event Index for CDC Reconciliation

Loads normalized binlog events into a (binlog_file, log_position) lookup
so the Avro export can be streamed against it.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from src.binlog.events import BinlogEvent, BinlogKey, is_indexable
from src.binlog.values import ParsedInt, coerce_int
from src.utils.jsonl import JsonLinesReader

logger = logging.getLogger(__name__)


class BinlogIndex:
    """
    In-memory index of row-mutation and XID events keyed by BinlogKey.

    Events without a binlog_file or with a zero log_position are rejected.
    On key collision the later event replaces the earlier one.
    """

    def __init__(self):
        """Initialize an empty index."""
        self._events: Dict[BinlogKey, BinlogEvent] = {}
        self.rejected = 0
        self.collisions = 0
        self.skipped = 0
        self.malformed = 0

    def add(self, event: Dict[str, Any], line_num: Optional[int] = None) -> bool:
        """
        Index one normalized event.

        Args:
            event: Normalized event dict
            line_num: Source line number, for diagnostics

        Returns:
            True if the event was indexed
        """
        where = f"line {line_num}" if line_num is not None else "input"

        event_type = event.get("event_type")
        if not isinstance(event_type, str):
            self.skipped += 1
            logger.warning(f"Skipping binlog event on {where}: missing 'event_type'")
            return False

        if not is_indexable(event_type):
            self.skipped += 1
            logger.debug(f"Ignoring {event_type} event on {where}")
            return False

        binlog_file = event.get("binlog_file")
        position = coerce_int(event.get("log_position"))
        if not isinstance(binlog_file, str) or not binlog_file \
                or not isinstance(position, ParsedInt) or position.value == 0:
            self.rejected += 1
            logger.warning(
                f"Skipping binlog event on {where} due to missing 'binlog_file' "
                f"or 'log_position'. Event: {event}"
            )
            return False

        indexed = BinlogEvent.from_dict(event, position.value)
        if indexed.key in self._events:
            self.collisions += 1
            logger.warning(
                f"Duplicate binlog key {indexed.key} on {where}; "
                f"replacing {self._events[indexed.key].event_type} with {event_type}"
            )

        self._events[indexed.key] = indexed
        return True

    def load(self, events: Iterable[Dict[str, Any]]) -> "BinlogIndex":
        """
        Index a sequence of normalized events.

        Args:
            events: Normalized event dicts

        Returns:
            self, for chaining
        """
        for line_num, event in enumerate(events, start=1):
            self.add(event, line_num)
        return self

    @classmethod
    def from_file(cls, path: str) -> "BinlogIndex":
        """
        Build an index from a normalized JSON Lines file.

        Args:
            path: File written by the normalize command

        Raises:
            OSError: If the file cannot be read
        """
        index = cls()
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            reader = JsonLinesReader(f, source=path)
            for line_num, event in reader:
                index.add(event, line_num)
        index.malformed = reader.malformed

        logger.info(
            f"Indexed {len(index)} binlog events from {path} "
            f"({index.rejected} rejected, {index.malformed} malformed, "
            f"{index.collisions} duplicate keys)"
        )
        return index

    def get(self, key: BinlogKey) -> Optional[BinlogEvent]:
        return self._events.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._events

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Tuple[BinlogKey, BinlogEvent]]:
        return iter(self._events.items())
