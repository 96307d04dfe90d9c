from .config import CipherConfig, DbConfig
from .crypto import FieldCipher
from .db.executor import QueryExecutor
from .db.models import OperationResult, Outcome, ReadOptions
from .db.session import DbConnection, connect_or_exit
from .normalize import normalize

__all__ = [
    "QueryExecutor",
    "FieldCipher",
    "DbConnection",
    "connect_or_exit",
    "DbConfig",
    "CipherConfig",
    "OperationResult",
    "Outcome",
    "ReadOptions",
    "normalize",
]
