from __future__ import annotations

import re
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from ..errors import GuardViolation

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_SORT_TERM = re.compile(
    r"^([a-zA-Z_][a-zA-Z0-9_]*(?:\.[a-zA-Z_][a-zA-Z0-9_]*)?)(?:\s+(ASC|DESC))?$",
    re.IGNORECASE,
)


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is safe for SQL interpolation.

    MySQL identifiers can contain letters, digits, underscores, and dollar signs,
    but we restrict to alphanumeric + underscore for security and simplicity.

    ⚠️ SECURITY CONTRACT ⚠️
    This function validates identifier format but does NOT make identifiers
    coming from untrusted user input safe to use. Identifiers MUST be trusted
    (hardcoded or checked against an allow-list at application boundaries).

    Args:
        name: The identifier to validate
        identifier_type: Description of the identifier (for error messages)

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        GuardViolation: If identifier is not a string, is empty or contains unsafe characters

    Example:
        >>> _validate_identifier("users", "table")
        'users'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        GuardViolation: Invalid table "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise GuardViolation(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise GuardViolation(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER.match(name):
        raise GuardViolation(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise GuardViolation(f"{identifier_type} {name!r} exceeds MySQL's 64-character limit")

    return name


def validate_table(table: str, allowed_tables: Collection[str] | None = None) -> str:
    """
    Validate a table reference, optionally qualified as ``schema.table``.

    When ``allowed_tables`` is given the table must also be one of them.
    """
    if not isinstance(table, str):
        raise GuardViolation(f"table must be a string, got {type(table).__name__}")
    parts = table.split(".")
    if len(parts) > 2:
        raise GuardViolation(f"Invalid table {table!r}: at most one schema qualifier is allowed")
    for part in parts:
        _validate_identifier(part, "table")
    if allowed_tables is not None and table not in allowed_tables:
        raise GuardViolation(f"Table {table!r} is not in the allowed table list")
    return table


def _columns(mapping: Mapping[str, Any], what: str) -> list[str]:
    return [_validate_identifier(col, f"{what} column") for col in mapping]


def _predicates(columns: Sequence[str], connector: str = " AND ") -> str:
    return connector.join(f"{col} = :{col}" for col in columns)


def build_insert(table: str, data: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
    """
    Build ``INSERT INTO t (a, b) VALUES (:a, :b)``.

    Raises:
        GuardViolation: If data is empty or a column name is invalid
    """
    if not data:
        raise GuardViolation("create requires a non-empty data mapping")
    cols = _columns(data, "data")
    col_names = ", ".join(cols)
    placeholders = ", ".join(f":{c}" for c in cols)
    return f"INSERT INTO {table} ({col_names}) VALUES ({placeholders})", dict(data)


def _projection(fields: Sequence[str] | str | None) -> str:
    if fields is None:
        return "*"
    if isinstance(fields, str):
        fields = [f.strip() for f in fields.split(",")]
    elif not isinstance(fields, Sequence):
        raise GuardViolation(f"fields must be a string or a sequence of names, got {type(fields).__name__}")
    fields = list(fields)
    if not fields or fields == ["*"]:
        return "*"
    return ", ".join(_validate_identifier(f, "field") for f in fields)


def _order_by(sort: str) -> str:
    if not isinstance(sort, str):
        raise GuardViolation(f"sort must be a string, got {type(sort).__name__}")
    terms = []
    for term in sort.split(","):
        match = _SORT_TERM.match(term.strip())
        if match is None:
            raise GuardViolation(f"Invalid sort term {term.strip()!r}: expected 'column [ASC|DESC]'")
        column, direction = match.groups()
        terms.append(f"{column} {direction.upper()}" if direction else column)
    return ", ".join(terms)


def _limit(limit: Any) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise GuardViolation(f"limit must be an integer, got {type(limit).__name__}")
    if limit < 0:
        raise GuardViolation("limit cannot be negative")
    return limit


def build_select(
    table: str,
    fields: Sequence[str] | str | None = None,
    conditions: Mapping[str, Any] | None = None,
    sort: str | None = None,
    limit: int | None = None,
) -> tuple[str, dict[str, Any]]:
    """
    Build ``SELECT <fields> FROM t [WHERE ...] [ORDER BY ...] [LIMIT n]``.

    Each clause is omitted when its option is absent. Only condition values
    are returned as parameters.
    """
    sql = f"SELECT {_projection(fields)} FROM {table}"
    params: dict[str, Any] = {}
    if conditions:
        sql += " WHERE " + _predicates(_columns(conditions, "condition"))
        params.update(conditions)
    if sort:
        sql += " ORDER BY " + _order_by(sort)
    if limit is not None:
        sql += f" LIMIT {_limit(limit)}"
    return sql, params


def build_update(
    table: str,
    data: Mapping[str, Any],
    conditions: Mapping[str, Any],
) -> tuple[str, dict[str, Any]]:
    """
    Build ``UPDATE t SET a = :a WHERE c = :c AND ...``.

    Placeholders share the column name, so a column may not appear in both
    data and conditions; that would make one bound value silently replace
    the other.

    Raises:
        GuardViolation: On empty data, empty conditions or overlapping columns
    """
    if not data:
        raise GuardViolation("update requires a non-empty data mapping")
    if not conditions:
        raise GuardViolation("update requires at least one condition; refusing to update every row")
    overlap = sorted(set(data) & set(conditions))
    if overlap:
        raise GuardViolation(f"Columns used in both data and conditions: {overlap}")

    set_clause = ", ".join(f"{c} = :{c}" for c in _columns(data, "data"))
    where = _predicates(_columns(conditions, "condition"))
    params = dict(data)
    params.update(conditions)
    return f"UPDATE {table} SET {set_clause} WHERE {where}", params


def build_delete(
    table: str,
    conditions: Mapping[str, Any],
    use_or_conditions: bool = False,
) -> tuple[str, dict[str, Any]]:
    """
    Build ``DELETE FROM t WHERE a = :a AND|OR b = :b``.

    Raises:
        GuardViolation: If conditions is empty
    """
    if not conditions:
        raise GuardViolation("delete requires at least one condition; refusing to delete every row")
    connector = " OR " if use_or_conditions else " AND "
    where = _predicates(_columns(conditions, "condition"), connector)
    return f"DELETE FROM {table} WHERE {where}", dict(conditions)
