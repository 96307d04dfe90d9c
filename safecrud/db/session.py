from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import DbConfig
from ..errors import ConnectionFailure, ExecutionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatementResult:
    row_count: int
    last_insert_id: Any = None


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise ExecutionFailure(f"{action} failed: {exc}") from exc


class DbConnection:
    """
    The one database connection shared by a process.

    Built once at startup and injected wherever it is needed. It is not safe
    for concurrent use; threads must synchronize around it or own one each.

    Use as:
        conn = DbConnection.open(DbConfig.from_env())
        executor = QueryExecutor(conn)
        ...
        conn.close()
    """

    def __init__(self, engine: Engine) -> None:
        """
        Connect using an existing SQLAlchemy Engine.

        Raises:
            ConnectionFailure: If the database is unreachable
        """
        self.engine = engine
        try:
            self._conn: Connection | None = engine.connect()
        except SQLAlchemyError as exc:
            raise ConnectionFailure(str(exc)) from exc

    @classmethod
    def open(cls, config: DbConfig, **engine_kwargs: Any) -> "DbConnection":
        """
        Create the engine from configuration and connect.

        Raises:
            ConnectionFailure: If the URL, driver or database is unusable
        """
        try:
            engine = create_engine(config.sqlalchemy_url(), **engine_kwargs)
        except (SQLAlchemyError, ImportError) as exc:
            raise ConnectionFailure(str(exc)) from exc
        return cls(engine)

    def __enter__(self) -> "DbConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
        return False

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbConnection is closed")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def in_transaction(self) -> bool:
        return self._connection().in_transaction()

    def begin(self) -> None:
        with _translate_errors("BEGIN"):
            self._connection().begin()

    def commit(self) -> None:
        with _translate_errors("COMMIT"):
            self._connection().commit()

    def rollback(self) -> None:
        with _translate_errors("ROLLBACK"):
            self._connection().rollback()

    def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> StatementResult:
        """
        Execute a non-SELECT statement.

        Returns:
            Affected row count and the driver's last inserted id
            (only meaningful after an INSERT)

        Raises:
            ExecutionFailure: If prepare, bind or execute fails
        """
        conn = self._connection()
        with _translate_errors("Statement"):
            result = conn.execute(text(sql), dict(params or {}))
            try:
                return StatementResult(
                    row_count=int(result.rowcount),
                    last_insert_id=result.lastrowid,
                )
            finally:
                result.close()

    def fetch_all(self, sql: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """
        Execute a SELECT and return every row as a dict.

        Raises:
            ExecutionFailure: If prepare, bind or execute fails
        """
        conn = self._connection()
        with _translate_errors("Query"):
            result = conn.execute(text(sql), dict(params or {}))
            try:
                return [dict(row) for row in result.mappings()]
            finally:
                result.close()

    def ping(self) -> bool:
        """Run ``SELECT 1``; True when the round trip succeeds."""
        try:
            with DbSession(self) as session:
                session.fetch_all("SELECT 1")
        except ExecutionFailure:
            logger.exception("Connection test failed")
            return False
        return True


def connect_or_exit(config: DbConfig, **engine_kwargs: Any) -> DbConnection:
    """
    Open the process connection, terminating the process if that fails.

    The diagnostic goes to the log; the caller never receives an unusable
    connection.
    """
    try:
        return DbConnection.open(config, **engine_kwargs)
    except ConnectionFailure as exc:
        logger.error("Database connection failed: %s", exc)
        sys.exit("Database connection failed. See the error log for details.")


class DbSession:
    """
    One unit of work on a DbConnection.

    With ``transactional=True`` an explicit transaction is begun on entry.
    Either way the work is committed on a clean exit and rolled back when an
    exception escapes the block, so nothing stays open after the block.

    Use as:
        with DbSession(conn, transactional=True) as session:
            session.execute(...)
    """

    def __init__(self, connection: DbConnection, transactional: bool = False) -> None:
        self.connection = connection
        self.transactional = transactional
        self._active = False

    def __enter__(self) -> "DbSession":
        if self._active or self.connection.in_transaction():
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        if self.transactional:
            self.connection.begin()
        self._active = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type:
                if self.transactional:
                    logger.warning("Rolling back transaction after %s", exc_type.__name__)
                self.connection.rollback()
            else:
                self.connection.commit()
        finally:
            self._active = False

        # propagate exceptions (if any)
        return False

    def _check_active(self) -> None:
        if not self._active:
            raise RuntimeError("DbSession is not active; use within a context manager")

    def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> StatementResult:
        self._check_active()
        return self.connection.execute(sql, params)

    def fetch_all(self, sql: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        self._check_active()
        return self.connection.fetch_all(sql, params)
