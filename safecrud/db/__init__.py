from .executor import QueryExecutor
from .helpers import build_delete, build_insert, build_select, build_update
from .models import DbOperationType, OperationResult, Outcome, ReadOptions
from .session import DbConnection, DbSession, connect_or_exit

__all__ = [
    "QueryExecutor",
    "DbConnection",
    "DbSession",
    "connect_or_exit",
    "OperationResult",
    "Outcome",
    "ReadOptions",
    "DbOperationType",
    "build_insert",
    "build_select",
    "build_update",
    "build_delete",
]
