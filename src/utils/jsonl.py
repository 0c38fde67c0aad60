"""
Newline-delimited JSON Utility for CDC Reconciliation

Reads JSON Lines input one line at a time. Lines that are not valid JSON
objects are skipped with a warning and counted, never fatal.
"""

import json
import logging
from typing import Any, Dict, IO, Iterable, Iterator, Tuple

logger = logging.getLogger(__name__)


class JsonLinesReader:
    """
    Iterates (line_number, object) pairs from a JSON Lines stream.

    Blank lines are ignored. Malformed lines are logged and counted in
    ``malformed``.
    """

    def __init__(self, lines: Iterable[str], source: str = "<stream>"):
        """
        Initialize the reader.

        Args:
            lines: Open text stream or any iterable of lines
            source: Name used in diagnostics
        """
        self.lines = lines
        self.source = source
        self.malformed = 0
        self.records_read = 0

    def __iter__(self) -> Iterator[Tuple[int, Dict[str, Any]]]:
        for line_num, line in enumerate(self.lines, start=1):
            text = line.strip()
            if not text:
                logger.debug(f"Skipping blank line {line_num} in {self.source}")
                continue

            try:
                obj = json.loads(text)
            except json.JSONDecodeError as e:
                self.malformed += 1
                logger.warning(f"Skipping malformed JSON line {line_num} in {self.source}: {e}")
                continue

            if not isinstance(obj, dict):
                self.malformed += 1
                logger.warning(
                    f"Skipping JSON line {line_num} in {self.source}: "
                    f"expected an object, got {type(obj).__name__}"
                )
                continue

            self.records_read += 1
            yield line_num, obj


def dump_json_line(obj: Dict[str, Any]) -> str:
    """Serialize compactly with sorted keys, without a trailing newline."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def write_json_line(stream: IO[str], obj: Dict[str, Any]) -> None:
    stream.write(dump_json_line(obj) + "\n")
