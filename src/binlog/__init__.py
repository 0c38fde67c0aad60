"""
Binlog Module for CDC Reconciliation

Parses the text rendering of MySQL binary logs into normalized events.

Main components:
- normalizer: Block parser producing normalized event dicts
- events: Event-type taxonomy and the typed event view used for indexing
- values: Best-effort integer and timestamp parsing

Usage:
    from src.binlog import EventNormalizer

    normalizer = EventNormalizer("/var/lib/mysql/mysql-bin.000001")
    for event in normalizer.normalize(sys.stdin):
        print(event["event_type"], event.get("log_position"))
"""

from src.binlog.events import BinlogEvent, BinlogKey
from src.binlog.normalizer import EventNormalizer

__all__ = [
    "BinlogEvent",
    "BinlogKey",
    "EventNormalizer",
]
