from __future__ import annotations

import logging
import time
from collections.abc import Callable, Collection, Iterable, Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..crypto import FieldCipher, field_list
from ..errors import CipherError, ExecutionFailure, GuardViolation
from ..normalize import normalize
from .helpers import build_delete, build_insert, build_select, build_update, validate_table
from .metrics import observe_operation
from .models import DbOperationType, OperationResult, ReadOptions
from .session import DbConnection, DbSession

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("safecrud.audit")

NOT_FOUND_MESSAGE = "No records found to delete."
INVALID_TABLE_LABEL = "<invalid>"

_FAILURE_PREFIX = {
    DbOperationType.CREATE: "Error inserting record",
    DbOperationType.READ: "Error fetching records",
    DbOperationType.UPDATE: "Error updating records",
    DbOperationType.DELETE: "Error deleting records",
}


class QueryExecutor:
    """
    Parameterized CRUD against one table at a time.

    Every public operation returns an OperationResult and never raises for
    database, cipher or argument problems; those become FAILURE or REJECTED
    results. Table and column names are trusted identifiers that end up in
    the SQL text (format-checked, and checked against ``allowed_tables`` when
    given); values only ever travel as bound parameters.

    Usage:
        executor = QueryExecutor(conn, cipher=FieldCipher(cipher_config))
        res = executor.create("users", {"name": "Ann", "ssn": "123-45-6789"}, fields_to_encrypt=["ssn"])
        if res.status:
            rows = executor.read("users", {"conditions": {"id": res.last_insert_id}},
                                 fields_to_decrypt=["ssn"]).data
    """

    def __init__(
        self,
        connection: DbConnection,
        cipher: FieldCipher | None = None,
        allowed_tables: Collection[str] | None = None,
    ) -> None:
        self.connection = connection
        self.cipher = cipher
        self.allowed_tables = frozenset(allowed_tables) if allowed_tables is not None else None

    # -- public operations -------------------------------------------------

    def create(
        self,
        table: str,
        data: Mapping[str, Any],
        fields_to_encrypt: Iterable[str] | str | None = None,
        use_transaction: bool = False,
    ) -> OperationResult:
        """
        Insert one row.

        Returns:
            SUCCESS with last_insert_id and row_count, or FAILURE/REJECTED
        """
        return self._call(
            DbOperationType.CREATE, table, self._create,
            table, data, fields_to_encrypt, use_transaction,
        )

    def read(
        self,
        table: str,
        options: ReadOptions | Mapping[str, Any] | None = None,
        fields_to_decrypt: Iterable[str] | str | None = None,
    ) -> OperationResult:
        """
        Fetch rows matching ``options.conditions`` (AND-ed).

        Condition values on columns listed in ``fields_to_decrypt`` are
        encrypted before binding so lookups on encrypted columns match.
        A value that fails to decrypt fails the whole read.

        Returns:
            SUCCESS with data (list of row dicts), or FAILURE/REJECTED
        """
        return self._call(
            DbOperationType.READ, table, self._read,
            table, options, fields_to_decrypt,
        )

    def update(
        self,
        table: str,
        data: Mapping[str, Any],
        conditions: Mapping[str, Any],
        fields_to_encrypt: Iterable[str] | str | None = None,
        use_transaction: bool = False,
    ) -> OperationResult:
        """
        Update rows matching ``conditions`` (AND-ed).

        Empty conditions are rejected, as is a column that appears in both
        data and conditions.

        Returns:
            SUCCESS with row_count, or FAILURE/REJECTED
        """
        return self._call(
            DbOperationType.UPDATE, table, self._update,
            table, data, conditions, fields_to_encrypt, use_transaction,
        )

    def delete(
        self,
        table: str,
        conditions: Mapping[str, Any],
        fields_to_encrypt: Iterable[str] | str | None = None,
        use_transaction: bool = False,
        use_or_conditions: bool = False,
        suppress_logging: bool = False,
    ) -> OperationResult:
        """
        Delete rows matching ``conditions``, AND-ed unless ``use_or_conditions``.

        Returns:
            SUCCESS with row_count, NOT_FOUND with a message when nothing
            matched, or FAILURE/REJECTED
        """
        return self._call(
            DbOperationType.DELETE, table, self._delete,
            table, conditions, fields_to_encrypt, use_transaction, use_or_conditions, suppress_logging,
        )

    def test_connection(self) -> bool:
        return self.connection.ping()

    # -- internals ---------------------------------------------------------

    def _call(
        self,
        op_type: DbOperationType,
        table: Any,
        work: Callable[..., OperationResult],
        *args: Any,
    ) -> OperationResult:
        start_time = time.monotonic()
        try:
            result = work(*args)
        except GuardViolation as exc:
            logger.warning("Rejected %s on %r: %s", op_type.value, table, exc)
            result = OperationResult.failure(str(exc), rejected=True)
        except (ExecutionFailure, CipherError, SQLAlchemyError) as exc:
            logger.error("%s on %r failed: %s", op_type.value, table, exc)
            result = OperationResult.failure(f"{_FAILURE_PREFIX[op_type]}: {exc}")

        latency = time.monotonic() - start_time
        observe_operation(self._metric_label(table), op_type.value, result.outcome.value, latency)
        return result

    def _table(self, table: str) -> str:
        return validate_table(table, self.allowed_tables)

    def _metric_label(self, table: Any) -> str:
        # Rejected table names never become label values.
        try:
            return self._table(table)
        except GuardViolation:
            return INVALID_TABLE_LABEL

    def _require_cipher(self) -> FieldCipher:
        if self.cipher is None:
            raise GuardViolation("Field encryption was requested but no cipher is configured")
        return self.cipher

    def _bind_values(
        self,
        values: Mapping[str, Any] | None,
        fields_to_encrypt: Iterable[str] | str | None,
        what: str,
    ) -> dict[str, Any]:
        """Normalize every value, then encrypt the requested fields."""
        if values is None:
            return {}
        if not isinstance(values, Mapping):
            raise GuardViolation(f"{what} must be a mapping, got {type(values).__name__}")
        prepared = {col: normalize(val) for col, val in values.items()}
        fields = field_list(fields_to_encrypt)
        if fields:
            prepared = self._require_cipher().encrypt_fields(prepared, fields)
        return prepared

    def _create(self, table, data, fields_to_encrypt, use_transaction) -> OperationResult:
        table = self._table(table)
        sql, params = build_insert(table, self._bind_values(data, fields_to_encrypt, "data"))

        with DbSession(self.connection, transactional=use_transaction) as session:
            res = session.execute(sql, params)

        return OperationResult.success(last_insert_id=res.last_insert_id, row_count=res.row_count)

    def _read(self, table, options, fields_to_decrypt) -> OperationResult:
        table = self._table(table)
        opts = ReadOptions.coerce(options)
        fields_to_decrypt = field_list(fields_to_decrypt)
        conditions = self._bind_values(opts.conditions, fields_to_decrypt, "conditions")
        sql, params = build_select(table, opts.fields, conditions, opts.sort, opts.limit)

        with DbSession(self.connection) as session:
            rows = session.fetch_all(sql, params)

        if fields_to_decrypt:
            rows = self._require_cipher().decrypt_fields(rows, fields_to_decrypt)
        return OperationResult.success(data=rows)

    def _update(self, table, data, conditions, fields_to_encrypt, use_transaction) -> OperationResult:
        table = self._table(table)
        fields_to_encrypt = field_list(fields_to_encrypt)
        sql, params = build_update(
            table,
            self._bind_values(data, fields_to_encrypt, "data"),
            self._bind_values(conditions, fields_to_encrypt, "conditions"),
        )

        with DbSession(self.connection, transactional=use_transaction) as session:
            res = session.execute(sql, params)

        return OperationResult.success(row_count=res.row_count)

    def _delete(
        self, table, conditions, fields_to_encrypt, use_transaction, use_or_conditions, suppress_logging,
    ) -> OperationResult:
        table = self._table(table)
        sql, params = build_delete(
            table,
            self._bind_values(conditions, fields_to_encrypt, "conditions"),
            use_or_conditions=use_or_conditions,
        )

        with DbSession(self.connection, transactional=use_transaction) as session:
            res = session.execute(sql, params)

        if res.row_count == 0:
            return OperationResult.missing(NOT_FOUND_MESSAGE)
        if not suppress_logging:
            audit_logger.info("Deleted %d rows from %s", res.row_count, table)
        return OperationResult.success(row_count=res.row_count)
