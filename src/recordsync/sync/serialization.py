"""
Plain-structural copies of records.

Records fetched from the remote side can carry live client objects
(timestamp wrappers, sets, decimals). Neither the local SQLite store nor the
HTTP layer can persist those, so every record is round-tripped through JSON
before it is written anywhere. Timestamp wrappers are flattened into a form
extract_timestamp() still understands, so sanitizing never changes the
outcome of a later comparison.
"""
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping


def to_plain(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a JSON-safe deep copy of record."""
    return json.loads(dumps(record))


def dumps(record: Mapping[str, Any]) -> str:
    return json.dumps(record, default=_json_default)


def _json_default(value: Any) -> Any:
    converter = getattr(value, "to_datetime", None) or getattr(value, "toDate", None)
    if callable(converter):
        return converter().isoformat()
    if hasattr(value, "seconds") and hasattr(value, "nanoseconds"):
        return {"seconds": value.seconds, "nanoseconds": value.nanoseconds}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
