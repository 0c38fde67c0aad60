"""
Unit tests for the Avro JSON record model.

Tests wrapped union primitives and record decoding.
"""

import copy

import pytest

from src.binlog.events import BinlogKey
from src.reconciliation.avro import (
    AvroBoolean,
    AvroDecodeError,
    AvroInt,
    AvroLong,
    AvroRecord,
    AvroString,
    SourceMetadata,
)


class TestWrappedPrimitives:
    """Test single-key union envelopes."""

    def test_decode_each_kind(self):
        """Test that each wrapper decodes its own tag."""
        assert AvroString.from_json({"string": "x"}) == AvroString("x")
        assert AvroLong.from_json({"long": 2 ** 40}) == AvroLong(2 ** 40)
        assert AvroInt.from_json({"int": 7}) == AvroInt(7)
        assert AvroBoolean.from_json({"boolean": False}) == AvroBoolean(False)

    def test_null_decodes_to_none(self):
        """Test that a JSON null union branch is absent."""
        assert AvroString.from_json(None) is None
        assert AvroLong.from_json(None) is None

    def test_encode_keeps_envelope(self):
        """Test that wrappers re-encode with their tag."""
        assert AvroString("x").to_json() == {"string": "x"}
        assert AvroLong(5).to_json() == {"long": 5}
        assert AvroInt(5).to_json() == {"int": 5}
        assert AvroBoolean(True).to_json() == {"boolean": True}

    @pytest.mark.parametrize("wrapper,payload", [
        (AvroString, "bare"),
        (AvroString, {"long": 1}),
        (AvroString, {"string": 1}),
        (AvroLong, {"long": "500"}),
        (AvroLong, {"long": True}),
        (AvroLong, {"long": 2 ** 63}),
        (AvroInt, {"int": 2 ** 31}),
        (AvroBoolean, {"boolean": 1}),
        (AvroString, {"string": "x", "extra": 1}),
    ])
    def test_wrong_shape_raises(self, wrapper, payload):
        """Test that anything but the exact envelope is rejected."""
        with pytest.raises(AvroDecodeError):
            wrapper.from_json(payload)


class TestAvroRecord:
    """Test record decoding."""

    def test_decode_record(self, make_record):
        """Test the accessors of a decoded record."""
        record = AvroRecord.from_json(make_record(gtid="uuid:5"))

        assert record.source_timestamp == 1704067200000
        assert record.binlog_file == "a.000001"
        assert record.binlog_position == 500
        assert record.change_type == "INSERT"
        assert record.gtid == "uuid:5"
        assert record.key == BinlogKey("a.000001", 500)
        assert record.source_metadata.database == "shop"
        assert record.source_metadata.primary_keys == ["order_id"]
        assert record.source_metadata.is_deleted == AvroBoolean(False)

    def test_record_reencodes_unchanged(self, make_record):
        """Test that decoding then encoding reproduces the input."""
        raw = make_record(gtid="uuid:5")
        original = copy.deepcopy(raw)

        assert AvroRecord.from_json(raw).to_json() == original

    def test_datastream_fields(self, make_record):
        """Test the optional Datastream server fields."""
        raw = make_record()
        raw["source_metadata"]["datastream_master_server_uuid"] = {"string": "abc"}
        raw["source_metadata"]["datastream_master_server_id"] = {"long": 1}

        metadata = AvroRecord.from_json(raw).source_metadata

        assert metadata.datastream_master_server_uuid == AvroString("abc")
        assert metadata.datastream_master_server_id == AvroLong(1)

    @pytest.mark.parametrize("overrides", [
        {"binlog_file": None},
        {"binlog_position": None},
        {"binlog_position": 0},
        {"binlog_file": ""},
    ])
    def test_missing_key_fields(self, make_record, overrides):
        """Test that a record without file or position has no key."""
        record = AvroRecord.from_json(make_record(**overrides))

        assert record.key is None

    def test_missing_metadata_has_no_key(self):
        """Test a record without source_metadata."""
        record = AvroRecord.from_json({"source_timestamp": 1})

        assert record.source_metadata == SourceMetadata()
        assert record.key is None

    @pytest.mark.parametrize("obj", [
        [],
        {"source_metadata": {}},
        {"source_timestamp": "1704067200000"},
        {"source_timestamp": 1, "source_metadata": []},
        {"source_timestamp": 1, "source_metadata": {"binlog_position": 500}},
        {"source_timestamp": 1, "source_metadata": {"primary_keys": [1]}},
        {"source_timestamp": 1, "payload": "x"},
    ])
    def test_invalid_records_raise(self, obj):
        """Test that contract violations raise AvroDecodeError."""
        with pytest.raises(AvroDecodeError):
            AvroRecord.from_json(obj)
