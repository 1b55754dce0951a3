"""Helpers for lightweight transactions (conditional CQL statements)."""

from typing import Any


def lwt_result(rows: Any) -> tuple[bool, Any | None]:
    """Unpack the result of a conditional (``IF ...``) statement.

    Cassandra answers every LWT with a single row whose first column is
    ``[applied]`` (exposed as ``applied`` by the named tuple row factory).
    When the condition failed, the remaining columns carry the current values
    of the row that made it fail.

    Returns:
        Tuple of (applied, row)
    """
    row = rows[0] if rows else None
    if row is None:
        return False, None
    applied = getattr(row, "applied", None)
    if applied is None:
        applied = row[0]
    return bool(applied), row
