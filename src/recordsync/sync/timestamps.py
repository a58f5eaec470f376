"""
Timestamp extraction for last-write-wins comparison.

Records are schema-free, so the instant used to order two versions of the
same record is looked up in a fixed, ordered list of candidate fields:

    lastModified → updatedAt → createdAt → timestamp

The first candidate holding a truthy value wins. That value may arrive in
several shapes depending on which side it came from:

  - remote-native timestamp objects exposing ``to_datetime()`` / ``toDate()``
  - serialized timestamps: {"seconds": ..., "nanoseconds": ...}
    (or the REST spelling {"_seconds": ..., "_nanoseconds": ...})
  - datetime / date values (naive values are taken as UTC)
  - numbers, already epoch milliseconds
  - strings, parsed as ISO 8601 first and then by dateutil

Extraction is total: a missing or malformed value yields 0.0, which makes
the record maximally stale rather than raising.
"""
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Tuple

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("lastModified", "updatedAt", "createdAt", "timestamp")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SECONDS_NANOS_KEYS = (("seconds", "nanoseconds"), ("_seconds", "_nanoseconds"))


def extract_timestamp(record: Optional[Mapping[str, Any]]) -> float:
    """Return the record's instant in epoch milliseconds, or 0.0 if unknown."""
    if not isinstance(record, Mapping):
        return 0.0

    try:
        value = _first_candidate(record)
        if value is None:
            return 0.0
        millis = _to_millis(value)
    except Exception as exc:  # malformed values compare as the zero instant
        logger.debug("Unparseable timestamp: %s", exc)
        return 0.0

    if millis is None or not math.isfinite(millis):
        return 0.0
    return millis


def _first_candidate(record: Mapping[str, Any]) -> Any:
    for field in TIMESTAMP_FIELDS:
        value = record.get(field)
        if value:
            return value
    return None


def _to_millis(value: Any) -> Optional[float]:
    converter = getattr(value, "to_datetime", None) or getattr(value, "toDate", None)
    if callable(converter):
        return _datetime_millis(converter())

    parts = _seconds_nanos(value)
    if parts is not None:
        seconds, nanos = parts
        return float(seconds) * 1000 + float(nanos) / 1e6

    if isinstance(value, datetime):
        return _datetime_millis(value)
    if isinstance(value, date):
        return _datetime_millis(datetime(value.year, value.month, value.day))
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return _datetime_millis(_parse_date_string(value))
    return None


def _seconds_nanos(value: Any) -> Optional[Tuple[Any, Any]]:
    """Return (seconds, nanoseconds) if value is a serialized timestamp."""
    if isinstance(value, Mapping):
        for sec_key, nano_key in _SECONDS_NANOS_KEYS:
            if sec_key in value and nano_key in value:
                return value[sec_key], value[nano_key]
        return None
    if hasattr(value, "seconds") and hasattr(value, "nanoseconds"):
        return value.seconds, value.nanoseconds
    return None


def _datetime_millis(dt: Any) -> float:
    if not isinstance(dt, datetime):
        raise TypeError(f"expected datetime, got {type(dt).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH).total_seconds() * 1000


def _parse_date_string(s: str) -> datetime:
    s = s.strip()
    if not s:
        raise ValueError("empty date string")
    try:
        # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
        iso = s[:-1] + "+00:00" if s.endswith("Z") else s
        return datetime.fromisoformat(iso)
    except ValueError:
        return date_parser.parse(s)
