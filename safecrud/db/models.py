from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..errors import GuardViolation


class DbOperationType(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NOT_FOUND = "not_found"
    # Arguments refused before any SQL was built (GuardViolation).
    REJECTED = "rejected"


@dataclass
class ReadOptions:
    """
    Projection, filter, sort and limit for a read.

    fields may be a list of column names or a comma separated string;
    None selects every column.
    """
    fields: Optional[Union[Sequence[str], str]] = None
    conditions: Mapping[str, Any] = field(default_factory=dict)
    sort: Optional[str] = None
    limit: Optional[int] = None

    @classmethod
    def coerce(cls, options: "ReadOptions | Mapping[str, Any] | None") -> "ReadOptions":
        if options is None:
            return cls()
        if isinstance(options, ReadOptions):
            return options
        if not isinstance(options, Mapping):
            raise GuardViolation(f"read options must be a mapping, got {type(options).__name__}")
        unknown = set(options) - {"fields", "conditions", "sort", "limit"}
        if unknown:
            raise GuardViolation(f"Unknown read options: {sorted(unknown)}")
        return cls(
            fields=options.get("fields"),
            conditions=options.get("conditions") or {},
            sort=options.get("sort"),
            limit=options.get("limit"),
        )


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a single CRUD call. Built fresh per call, never persisted.
    """
    outcome: Outcome
    data: Optional[list[dict[str, Any]]] = None
    error: Optional[str] = None
    row_count: Optional[int] = None
    last_insert_id: Optional[Any] = None
    message: Optional[str] = None

    @property
    def status(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def not_found(self) -> bool:
        return self.outcome is Outcome.NOT_FOUND

    @classmethod
    def success(cls, **payload: Any) -> "OperationResult":
        return cls(outcome=Outcome.SUCCESS, **payload)

    @classmethod
    def failure(cls, error: str, rejected: bool = False) -> "OperationResult":
        return cls(outcome=Outcome.REJECTED if rejected else Outcome.FAILURE, error=error)

    @classmethod
    def missing(cls, message: str) -> "OperationResult":
        return cls(outcome=Outcome.NOT_FOUND, message=message)

    def to_dict(self) -> dict[str, Any]:
        """
        Uniform result shape: status is always present, other keys only when set.
        """
        out: dict[str, Any] = {"status": self.status}
        for key, value in (
            ("data", self.data),
            ("error", self.error),
            ("rowCount", self.row_count),
            ("lastInsertId", self.last_insert_id),
            ("message", self.message),
        ):
            if value is not None:
                out[key] = value
        return out
