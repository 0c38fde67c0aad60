"""
Best-effort Value Parsing for Binlog Normalization

Binlog text dumps are human-readable and not always well-formed. Every
parse here returns either the parsed value or a RawString carrying the
original text, so callers have to deal with the degraded case explicitly.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Union

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_INT_RE = re.compile(r'^[+-]?\d+$', re.ASCII)

# "2006-01-02 15:04:05", the format of the Date field
_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$', re.ASCII)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# RFC 3339 with an optional fraction of up to nine digits
_RFC3339_RE = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})'
    r'(?:\.(\d{1,9}))?'
    r'([Zz]|[+-]\d{2}:\d{2})$',
    re.ASCII
)

# "2006-01-02 15:04:05.999999999 -0700 MST", the high-precision commit format
_HIGH_PRECISION_RE = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})'
    r'(?:\.(\d{1,9}))?'
    r' ([+-])(\d{2})(\d{2}) [A-Za-z][A-Za-z0-9+-]*$',
    re.ASCII
)


@dataclass(frozen=True)
class RawString:
    """A value that could not be parsed and is kept verbatim."""
    raw: str

    def to_json(self) -> str:
        return self.raw


@dataclass(frozen=True)
class ParsedInt:
    value: int

    def to_json(self) -> int:
        return self.value


@dataclass(frozen=True)
class ParsedTimestamp:
    """
    A validated instant.

    Attributes:
        text: Canonical RFC 3339 rendering, as written to normalized output
        epoch_nanos: Nanoseconds since the Unix epoch
    """
    text: str
    epoch_nanos: int

    def to_json(self) -> str:
        return self.text


IntValue = Union[ParsedInt, RawString]
TimestampValue = Union[ParsedTimestamp, RawString]


def parse_int(value: str) -> IntValue:
    """
    Parse a base-10 signed 64-bit integer.

    Args:
        value: Text to parse

    Returns:
        ParsedInt on success, RawString otherwise
    """
    if _INT_RE.match(value):
        number = int(value)
        if INT64_MIN <= number <= INT64_MAX:
            return ParsedInt(number)
    return RawString(value)


def coerce_int(value) -> IntValue:
    """Interpret a decoded JSON value as an integer field."""
    if isinstance(value, bool):
        return RawString(str(value).lower())
    if isinstance(value, int):
        return ParsedInt(value)
    if isinstance(value, str):
        return parse_int(value)
    return RawString("" if value is None else str(value))


def _fraction_nanos(fraction: str) -> int:
    if not fraction:
        return 0
    return int(fraction.ljust(9, "0"))


def _epoch_seconds(moment: datetime) -> int:
    delta = moment - _EPOCH
    return delta.days * 86400 + delta.seconds


def format_rfc3339(moment: datetime, nanos: int = 0) -> str:
    """
    Render an aware datetime as RFC 3339.

    The fraction is omitted when zero and trailing zeros are trimmed
    otherwise. A zero UTC offset is written as "Z".
    """
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if nanos:
        text += "." + f"{nanos:09d}".rstrip("0")

    offset = moment.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"

    total_minutes = int(offset.total_seconds()) // 60
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def format_epoch_millis(millis: int) -> str:
    """Render epoch milliseconds as an RFC 3339 UTC timestamp."""
    seconds, remainder = divmod(millis, 1000)
    moment = _EPOCH + timedelta(seconds=seconds)
    return format_rfc3339(moment, remainder * NANOS_PER_MILLI)


def _build(parts, tz: timezone) -> datetime:
    year, month, day, hour, minute, second = (int(p) for p in parts)
    return datetime(year, month, day, hour, minute, second, tzinfo=tz)


def parse_rfc3339(value: str) -> TimestampValue:
    """
    Validate an RFC 3339 timestamp with up to nanosecond precision.

    The original text is kept as the canonical rendering.
    """
    match = _RFC3339_RE.match(value)
    if not match:
        return RawString(value)

    zone = match.group(8)
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours > 23 or minutes > 59:
            return RawString(value)
        offset = timedelta(hours=hours, minutes=minutes)
        tz = timezone(-offset if zone[0] == "-" else offset)

    try:
        moment = _build(match.group(1, 2, 3, 4, 5, 6), tz)
    except ValueError:
        return RawString(value)

    nanos = _fraction_nanos(match.group(7))
    return ParsedTimestamp(value, _epoch_seconds(moment) * NANOS_PER_SECOND + nanos)


def parse_date(value: str) -> TimestampValue:
    """
    Parse the binlog Date field.

    The value carries no zone and is read as UTC. Second precision.
    """
    if not _DATE_RE.match(value):
        return RawString(value)
    try:
        moment = datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return RawString(value)
    return ParsedTimestamp(format_rfc3339(moment), _epoch_seconds(moment) * NANOS_PER_SECOND)


def parse_high_precision(value: str) -> TimestampValue:
    """Parse "YYYY-MM-DD HH:MM:SS[.fffffffff] +HHMM ZONE" and re-encode as RFC 3339."""
    match = _HIGH_PRECISION_RE.match(value)
    if not match:
        return RawString(value)

    hours, minutes = int(match.group(9)), int(match.group(10))
    if hours > 23 or minutes > 59:
        return RawString(value)
    offset = timedelta(hours=hours, minutes=minutes)
    tz = timezone(-offset if match.group(8) == "-" else offset)

    try:
        moment = _build(match.group(1, 2, 3, 4, 5, 6), tz)
    except ValueError:
        return RawString(value)

    nanos = _fraction_nanos(match.group(7))
    return ParsedTimestamp(
        format_rfc3339(moment, nanos),
        _epoch_seconds(moment) * NANOS_PER_SECOND + nanos,
    )


def parse_commit_timestamp(value: str) -> TimestampValue:
    """
    Parse an immediate/original commit timestamp.

    Two encodings are accepted:
    - a parenthesized RFC 3339 suffix, e.g. "1704067200123456 (2024-01-01T00:00:00.123456Z)",
      whose inner text is validated and kept as-is
    - the high-precision layout handled by parse_high_precision
    """
    if "(" in value and value.endswith("Z)"):
        extracted = value[value.rindex("(") + 1:-1]
        parsed = parse_rfc3339(extracted)
        if isinstance(parsed, RawString):
            return RawString(value)
        return parsed
    return parse_high_precision(value)
