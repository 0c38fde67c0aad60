"""
Logging Configuration for CDC Reconciliation

Diagnostics go to stderr so stdout stays free for normalized events and
reconciliation findings. Set JSON_LOGGING=true for one JSON object per log
record.
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone
from typing import IO, Optional

from src.utils.correlation import CorrelationIdFilter

CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s - %(message)s'
CONSOLE_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Optional attributes passed via `extra=` that are copied into JSON output
EXTRA_FIELDS = ('binlog_file', 'source', 'line_num', 'command', 'duration', 'counts')


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with correlation ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', 'N/A'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def json_logging_enabled() -> bool:
    return os.getenv('JSON_LOGGING', 'false').lower() == 'true'


def setup_logging(
    verbose: bool = False,
    json_logging: Optional[bool] = None,
    stream: Optional[IO[str]] = None
) -> logging.Handler:
    """
    Configure the root logger with a single stderr handler.

    Args:
        verbose: Log at DEBUG instead of INFO
        json_logging: Force JSON output on or off (defaults to JSON_LOGGING)
        stream: Destination stream (defaults to stderr)

    Returns:
        The installed handler
    """
    if json_logging is None:
        json_logging = json_logging_enabled()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    if json_logging:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    handler.addFilter(CorrelationIdFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, '_reconcile_handler', False):
            root.removeHandler(existing)
    handler._reconcile_handler = True

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    return handler
