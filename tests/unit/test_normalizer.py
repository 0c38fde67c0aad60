"""
Unit tests for the binlog event normalizer.

Tests block parsing, field normalization and degraded parsing of
malformed values.
"""

import logging

import pytest

SAMPLE_DUMP = """\
=== GTIDEvent ===
Date: 2024-01-01 00:00:00
Log position: 300
GTID_NEXT: 3E11FA47-71CA-11E1-9E33-C80AA9429562:23
Immediate commmit timestamp: 1704067200040000 (2024-01-01T00:00:00.04Z)
--
=== WriteRowsEventV2 ===
Date: 2024-01-01 00:00:00
Log position: 500
Event size: 52
Table: shop.orders
TableID: 108
--

=== XIDEvent ===
Date: 2024-01-01 00:00:00
Log position: 531
XID: 1234
"""


class TestEventNormalizer:
    """Test block parsing."""

    @pytest.fixture
    def normalizer(self):
        """Create an EventNormalizer for a full binlog path."""
        from src.binlog.normalizer import EventNormalizer
        return EventNormalizer("/var/lib/mysql/a.000001")

    def test_parses_all_blocks(self, normalizer):
        """Test that every block becomes one event, in order."""
        events = list(normalizer.normalize(SAMPLE_DUMP.splitlines()))

        assert [e["event_type"] for e in events] == ["GTID", "WriteRowsEventV2", "XID"]
        assert [e["log_position"] for e in events] == [300, 500, 531]
        assert normalizer.events_emitted == 3
        assert normalizer.warnings == 0

    def test_binlog_file_is_basename(self, normalizer):
        """Test that every event carries the basename of the binlog file."""
        events = list(normalizer.normalize(SAMPLE_DUMP.splitlines()))

        assert all(e["binlog_file"] == "a.000001" for e in events)

    def test_field_normalization(self, normalizer):
        """Test key normalization and integer parsing."""
        events = list(normalizer.normalize(SAMPLE_DUMP.splitlines()))
        write = events[1]

        assert write["timestamp"] == "2024-01-01T00:00:00Z"
        assert write["event_size"] == 52
        assert write["table"] == "shop.orders"
        assert write["tableid"] == 108
        assert events[2]["xid"] == 1234

    def test_gtid_and_commit_timestamp(self, normalizer):
        """Test GTID_NEXT stays a string and commit timestamps are extracted."""
        gtid = list(normalizer.normalize(SAMPLE_DUMP.splitlines()))[0]

        assert gtid["gtid_next"] == "3E11FA47-71CA-11E1-9E33-C80AA9429562:23"
        assert gtid["immediate_commmit_timestamp"] == "2024-01-01T00:00:00.04Z"

    def test_high_precision_commit_timestamp(self, normalizer):
        """Test the high-precision commit layout is re-encoded."""
        lines = [
            "=== UpdateRowsEventV2 ===",
            "Log position: 10",
            "Orignal commmit timestamp: 2024-01-01 00:00:00.000001000 +0000 UTC",
        ]
        event = next(normalizer.normalize(lines))

        assert event["orignal_commmit_timestamp"] == "2024-01-01T00:00:00.000001Z"

    def test_lines_before_first_header_are_ignored(self, normalizer):
        """Test that orphan body lines are dropped."""
        lines = ["Log position: 1", "=== XIDEvent ===", "Log position: 2"]
        events = list(normalizer.normalize(lines))

        assert len(events) == 1
        assert events[0]["log_position"] == 2

    def test_empty_input(self, normalizer):
        """Test that no input yields no events."""
        assert list(normalizer.normalize([])) == []
        assert list(normalizer.normalize(["", "--", "   "])) == []

    def test_header_substring_match(self, normalizer):
        """Test that row-mutation types are found inside longer titles."""
        events = list(normalizer.normalize([
            "=== binlog.DeleteRowsEventV2 (table_id=5) ===",
            "Log position: 7",
            "=== RotateEvent ===",
            "=== Query ===",
        ]))

        assert [e["event_type"] for e in events] == ["DeleteRowsEventV2", "Rotate", "Query"]

    def test_event_type_field_overrides_header(self, normalizer):
        """Test that a recognized Event type field replaces the header type."""
        events = list(normalizer.normalize([
            "=== RowsEvent ===",
            "Event type: UpdateRowsEventV2 (31)",
            "=== RowsEvent ===",
            "Event type: TableMapEvent",
        ]))

        assert events[0]["event_type"] == "UpdateRowsEventV2"
        assert events[1]["event_type"] == "Rows"

    def test_lines_without_key_value_shape_are_ignored(self, normalizer):
        """Test that free text inside a block is skipped."""
        event = next(normalizer.normalize([
            "=== QueryEvent ===",
            "BEGIN",
            "Query: BEGIN",
        ]))

        assert event == {"event_type": "Query", "query": "BEGIN", "binlog_file": "a.000001"}

    def test_value_containing_colons(self, normalizer):
        """Test that only the first ': ' separates key and value."""
        event = next(normalizer.normalize([
            "=== GTIDEvent ===",
            "GTID_NEXT: uuid:1-5",
        ]))

        assert event["gtid_next"] == "uuid:1-5"

    def test_is_lazy(self, normalizer):
        """Test that events are produced before the input is exhausted."""
        def lines():
            yield "=== XIDEvent ==="
            yield "Log position: 1"
            yield "=== XIDEvent ==="
            raise AssertionError("read past the second header")

        events = normalizer.normalize(lines())

        assert next(events)["log_position"] == 1


class TestDegradedValues:
    """Test best-effort handling of unparseable values."""

    @pytest.fixture
    def normalizer(self):
        """Create an EventNormalizer."""
        from src.binlog.normalizer import EventNormalizer
        return EventNormalizer("a.000001")

    def test_bad_date_kept_raw_with_warning(self, normalizer, caplog):
        """Test that an unparseable Date is kept under 'date'."""
        with caplog.at_level(logging.WARNING):
            event = next(normalizer.normalize(["=== XIDEvent ===", "Date: someday"]))

        assert event["date"] == "someday"
        assert "timestamp" not in event
        assert normalizer.warnings == 1
        assert "someday" in caplog.text

    def test_bad_log_position_kept_raw_with_warning(self, normalizer, caplog):
        """Test that an unparseable Log position is kept as a string."""
        with caplog.at_level(logging.WARNING):
            event = next(normalizer.normalize(["=== XIDEvent ===", "Log position: 12x"]))

        assert event["log_position"] == "12x"
        assert normalizer.warnings == 1

    def test_bad_commit_timestamp_kept_raw_with_warning(self, normalizer, caplog):
        """Test that an unparseable commit timestamp is kept verbatim."""
        with caplog.at_level(logging.WARNING):
            event = next(normalizer.normalize([
                "=== GTIDEvent ===",
                "Immediate commmit timestamp: garbage",
            ]))

        assert event["immediate_commmit_timestamp"] == "garbage"
        assert normalizer.warnings == 1

    def test_non_integer_known_field_kept_silently(self, normalizer, caplog):
        """Test that known integer fields fall back to strings without warnings."""
        with caplog.at_level(logging.WARNING):
            event = next(normalizer.normalize(["=== QueryEvent ===", "Flags: 0x08"]))

        assert event["flags"] == "0x08"
        assert normalizer.warnings == 0
        assert caplog.text == ""

    def test_processing_continues_after_bad_values(self, normalizer):
        """Test that bad values never stop the stream."""
        events = list(normalizer.normalize([
            "=== WriteRowsEventV2 ===",
            "Date: bad",
            "Log position: bad",
            "=== XIDEvent ===",
            "Log position: 9",
        ]))

        assert len(events) == 2
        assert events[1]["log_position"] == 9


class TestHelpers:
    """Test module-level helpers."""

    def test_normalize_key(self):
        """Test key normalization."""
        from src.binlog.normalizer import normalize_key

        assert normalize_key("Slave proxy ID") == "slave_proxy_id"
        assert normalize_key("GTID_NEXT") == "gtid_next"

    @pytest.mark.parametrize("title,expected", [
        ("WriteRowsEventV2", "WriteRowsEventV2"),
        ("XIDEvent", "XID"),
        ("FormatDescriptionEvent", "FormatDescription"),
        ("Heartbeat", "Heartbeat"),
    ])
    def test_event_type_from_header(self, title, expected):
        """Test header-derived event types."""
        from src.binlog.normalizer import event_type_from_header

        assert event_type_from_header(title) == expected
