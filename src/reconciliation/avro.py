"""
Avro JSON Record Model

Decodes rows exported from Avro container files with avro-tools tojson.
Nullable Avro unions are written as single-key envelopes such as
{"string": "mysql-bin.000001"} or {"long": 500}; each envelope kind has its
own wrapper type here so records re-encode exactly as they were read.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.binlog.events import BinlogKey
from src.binlog.values import INT64_MAX, INT64_MIN

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class AvroDecodeError(Exception):
    """Raised when a record does not follow the Avro JSON contract."""
    pass


def _unwrap(payload: Any, tag: str, field_name: str) -> Any:
    if not isinstance(payload, dict) or list(payload.keys()) != [tag]:
        raise AvroDecodeError(
            f"Field '{field_name}' must be a {{\"{tag}\": ...}} envelope, got {payload!r}"
        )
    return payload[tag]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class AvroString:
    string: str

    @classmethod
    def from_json(cls, payload: Any, field_name: str = "string") -> Optional["AvroString"]:
        if payload is None:
            return None
        value = _unwrap(payload, "string", field_name)
        if not isinstance(value, str):
            raise AvroDecodeError(f"Field '{field_name}' must wrap a string, got {value!r}")
        return cls(value)

    def to_json(self) -> Dict[str, str]:
        return {"string": self.string}


@dataclass(frozen=True)
class AvroLong:
    long: int

    @classmethod
    def from_json(cls, payload: Any, field_name: str = "long") -> Optional["AvroLong"]:
        if payload is None:
            return None
        value = _unwrap(payload, "long", field_name)
        if not _is_int(value) or not INT64_MIN <= value <= INT64_MAX:
            raise AvroDecodeError(f"Field '{field_name}' must wrap a 64-bit integer, got {value!r}")
        return cls(value)

    def to_json(self) -> Dict[str, int]:
        return {"long": self.long}


@dataclass(frozen=True)
class AvroInt:
    int: int

    @classmethod
    def from_json(cls, payload: Any, field_name: str = "int") -> Optional["AvroInt"]:
        if payload is None:
            return None
        value = _unwrap(payload, "int", field_name)
        if not _is_int(value) or not INT32_MIN <= value <= INT32_MAX:
            raise AvroDecodeError(f"Field '{field_name}' must wrap a 32-bit integer, got {value!r}")
        return cls(value)

    def to_json(self) -> Dict[str, int]:
        return {"int": self.int}


@dataclass(frozen=True)
class AvroBoolean:
    boolean: bool

    @classmethod
    def from_json(cls, payload: Any, field_name: str = "boolean") -> Optional["AvroBoolean"]:
        if payload is None:
            return None
        value = _unwrap(payload, "boolean", field_name)
        if not isinstance(value, bool):
            raise AvroDecodeError(f"Field '{field_name}' must wrap a boolean, got {value!r}")
        return cls(value)

    def to_json(self) -> Dict[str, bool]:
        return {"boolean": self.boolean}


# source_metadata fields carried in union envelopes
WRAPPED_METADATA_FIELDS = {
    "change_type": AvroString,
    "gtid": AvroString,
    "binlog_file": AvroString,
    "binlog_position": AvroLong,
    "is_deleted": AvroBoolean,
    "datastream_master_server_uuid": AvroString,
    "datastream_master_server_id": AvroLong,
}


def _plain_string(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise AvroDecodeError(f"Field '{field_name}' must be a string, got {value!r}")
    return value


@dataclass
class SourceMetadata:
    """The source_metadata block of a Datastream-style Avro row."""
    database: str = ""
    table: str = ""
    change_type: Optional[AvroString] = None
    gtid: Optional[AvroString] = None
    binlog_file: Optional[AvroString] = None
    binlog_position: Optional[AvroLong] = None
    is_deleted: Optional[AvroBoolean] = None
    primary_keys: List[str] = field(default_factory=list)
    datastream_master_server_uuid: Optional[AvroString] = None
    datastream_master_server_id: Optional[AvroLong] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, payload: Any) -> "SourceMetadata":
        """
        Decode a source_metadata object.

        Raises:
            AvroDecodeError: If a field has the wrong shape
        """
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise AvroDecodeError(f"source_metadata must be an object, got {payload!r}")

        wrapped = {
            name: wrapper.from_json(payload.get(name), name)
            for name, wrapper in WRAPPED_METADATA_FIELDS.items()
        }

        primary_keys = payload.get("primary_keys") or []
        if not isinstance(primary_keys, list) or not all(isinstance(k, str) for k in primary_keys):
            raise AvroDecodeError(f"primary_keys must be a list of strings, got {primary_keys!r}")

        return cls(
            database=_plain_string(payload.get("database"), "database"),
            table=_plain_string(payload.get("table"), "table"),
            primary_keys=list(primary_keys),
            raw=payload,
            **wrapped,
        )

    def to_json(self) -> Dict[str, Any]:
        """Re-encode in the original key order with envelopes intact."""
        encoded = {}
        for name, value in self.raw.items():
            if name in WRAPPED_METADATA_FIELDS:
                wrapper = getattr(self, name)
                encoded[name] = wrapper.to_json() if wrapper is not None else None
            else:
                encoded[name] = value
        return encoded


@dataclass
class AvroRecord:
    """One row of the Avro export, as JSON."""
    source_timestamp: int
    source_metadata: SourceMetadata
    payload: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, obj: Any) -> "AvroRecord":
        """
        Decode a record.

        Args:
            obj: Parsed JSON object for one line

        Raises:
            AvroDecodeError: If the record does not follow the contract
        """
        if not isinstance(obj, dict):
            raise AvroDecodeError(f"Record must be an object, got {type(obj).__name__}")

        source_timestamp = obj.get("source_timestamp")
        if not _is_int(source_timestamp) or not INT64_MIN <= source_timestamp <= INT64_MAX:
            raise AvroDecodeError(
                f"source_timestamp must be epoch milliseconds, got {source_timestamp!r}"
            )

        payload = obj.get("payload") or {}
        if not isinstance(payload, dict):
            raise AvroDecodeError(f"payload must be an object, got {payload!r}")

        return cls(
            source_timestamp=source_timestamp,
            source_metadata=SourceMetadata.from_json(obj.get("source_metadata")),
            payload=payload,
            raw=obj,
        )

    def to_json(self) -> Dict[str, Any]:
        encoded = {}
        for name, value in self.raw.items():
            if name == "source_metadata" and value is not None:
                encoded[name] = self.source_metadata.to_json()
            else:
                encoded[name] = value
        return encoded

    @property
    def binlog_file(self) -> str:
        wrapper = self.source_metadata.binlog_file
        return wrapper.string if wrapper else ""

    @property
    def binlog_position(self) -> int:
        wrapper = self.source_metadata.binlog_position
        return wrapper.long if wrapper else 0

    @property
    def change_type(self) -> str:
        wrapper = self.source_metadata.change_type
        return wrapper.string if wrapper else ""

    @property
    def gtid(self) -> str:
        wrapper = self.source_metadata.gtid
        return wrapper.string if wrapper else ""

    @property
    def key(self) -> Optional[BinlogKey]:
        """Join key, or None when the record does not carry one."""
        if not self.binlog_file or self.binlog_position == 0:
            return None
        return BinlogKey(self.binlog_file, self.binlog_position)
