"""
CSV encoding for discrepancy uploads.

The header comes from the first record's fields, in its own order. Every
row is that record's own values in its own field order, so records are
expected to share the first record's fields and order (not checked).
Only string values are quoted, and only when they contain a comma, a
double quote or a newline.
Pass strict=True to reject records whose field set differs from the header;
strict rows are then written in header order.
"""

import json
from typing import Any, List

from monthly_uploader.errors import CsvEncodingError
from monthly_uploader.models import Record

_NEEDS_QUOTES = (",", '"', "\n")


def format_value(value: Any) -> str:
    if isinstance(value, str):
        if any(ch in value for ch in _NEEDS_QUOTES):
            return '"' + value.replace('"', '""') + '"'
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def encode(records: List[Record], strict: bool = False) -> str:
    """Serialize records to CSV text. Empty input gives an empty string (no header)."""
    if not records:
        return ""

    headers = list(records[0].keys())
    lines = [",".join(headers)]

    for index, record in enumerate(records):
        if strict and set(record.keys()) != set(headers):
            raise CsvEncodingError(
                f"Record {index} fields {sorted(record.keys())} do not match header {sorted(headers)}"
            )
        values = [record[h] for h in headers] if strict else list(record.values())
        lines.append(",".join(format_value(v) for v in values))

    return "\n".join(lines)


def size_kb(csv_text: str) -> float:
    """UTF-8 size of the CSV body in KB, rounded to 2 decimals."""
    return round(len(csv_text.encode("utf-8")) / 1024, 2)
