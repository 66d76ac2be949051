"""
CSV Export - Render rows as CSV text.
"""

from collections.abc import Mapping, Sequence
from typing import Any


def escape_csv_value(value: str) -> str:
    """Quote a value containing a comma, quote or newline; inner quotes are doubled."""
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def to_csv(rows: Sequence[Mapping[str, Any]], columns: Sequence[str] | None = None) -> str:
    """
    Render rows as CSV with a header line.

    Columns default to the keys of the first row. Missing and null values
    render as empty cells. With no rows only the header is emitted.
    """
    keys = list(columns) if columns is not None else list(rows[0].keys()) if rows else []
    header = ",".join(escape_csv_value(k) for k in keys)
    if not rows:
        return header + "\n"
    body = "\n".join(
        ",".join(
            escape_csv_value("" if row.get(k) is None else str(row.get(k))) for k in keys
        )
        for row in rows
    )
    return header + "\n" + body
