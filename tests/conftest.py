"""
Pytest configuration and shared fixtures for reconciliation tests.

Provides builders for normalized binlog events, Avro JSON records and
JSON Lines input files.
"""

import json

import pytest

# 2024-01-01T00:00:00Z
BASE_EPOCH_MS = 1704067200000


def binlog_event(
    log_position=500,
    event_type="WriteRowsEventV2",
    binlog_file="a.000001",
    timestamp="2024-01-01T00:00:00Z",
    **fields
):
    """Build a normalized binlog event dict."""
    event = {
        "event_type": event_type,
        "binlog_file": binlog_file,
        "log_position": log_position,
    }
    if timestamp is not None:
        event["timestamp"] = timestamp
    event.update(fields)
    return event


def avro_record(
    binlog_position=500,
    binlog_file="a.000001",
    source_timestamp=BASE_EPOCH_MS,
    change_type="INSERT",
    gtid=None,
    database="shop",
    table="orders"
):
    """Build an Avro JSON record with wrapped union primitives."""
    return {
        "source_timestamp": source_timestamp,
        "source_metadata": {
            "database": database,
            "table": table,
            "change_type": {"string": change_type} if change_type is not None else None,
            "gtid": {"string": gtid} if gtid is not None else None,
            "binlog_file": {"string": binlog_file} if binlog_file is not None else None,
            "binlog_position": {"long": binlog_position} if binlog_position is not None else None,
            "is_deleted": {"boolean": change_type == "DELETE"},
            "primary_keys": ["order_id"],
        },
        "payload": {
            "order_id": {"int": 1},
            "customer_name": {"string": "Ada"},
        },
    }


def write_jsonl(path, rows):
    """Write rows as JSON Lines; str rows are written verbatim."""
    with open(path, "w", encoding="utf-8") as f:
        for row in rows:
            f.write(row if isinstance(row, str) else json.dumps(row))
            f.write("\n")
    return str(path)


@pytest.fixture
def make_event():
    """Factory for normalized binlog events."""
    return binlog_event


@pytest.fixture
def make_record():
    """Factory for Avro JSON records."""
    return avro_record


@pytest.fixture
def jsonl_file(tmp_path):
    """Factory writing a JSON Lines file under tmp_path."""
    def _write(name, rows):
        return write_jsonl(tmp_path / name, rows)
    return _write
