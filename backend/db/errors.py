"""Database error helpers."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION_SQLSTATE = "23505"


def _error_message(error: IntegrityError) -> str:
    original = getattr(error, "orig", None)
    return str(original or error).lower()


def is_unique_violation(error: IntegrityError) -> bool:
    """Return True when the IntegrityError indicates a unique-constraint conflict."""
    original = getattr(error, "orig", None)
    sqlstate = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if sqlstate == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = _error_message(error)
    return "duplicate key" in message or "unique constraint" in message


def violated_column(error: IntegrityError, candidates: Iterable[str]) -> str | None:
    """Best-effort guess of which column a unique violation refers to.

    PostgreSQL reports the constraint or key name (``Key (email)=...``) and
    SQLite reports ``table.column``; both contain the column name.
    """
    if not is_unique_violation(error):
        return None
    message = _error_message(error)
    for column in candidates:
        if column.lower() in message:
            return column
    return None


__all__ = ["UNIQUE_VIOLATION_SQLSTATE", "is_unique_violation", "violated_column"]
