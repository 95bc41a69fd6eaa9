# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Generic SQL execution with eager result materialization.

Every read returns a TabularResult that is fully fetched before the call
returns, so the cursor is closed before any caller looks at the data.
Writes auto-commit individually; execute_batch is the only operation with
transactional scope.

Positional parameters use JDBC-style ``?`` placeholders and are always
bound by the driver, never interpolated into the statement text.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from ledgerstat.core.errors import DatabaseConnectionError, QueryError, preview_sql
from ledgerstat.core.models import TabularResult
from ledgerstat.storage.connection import AUTOCOMMIT, ConnectionManager

logger = logging.getLogger(__name__)

# Raw statements bypass bind handling entirely (no %-formatting by the driver)
_RAW = {"no_parameters": True}

_QUOTES = ("'", '"', "`")

# Dialects whose string literals treat backslash as an escape character
_BACKSLASH_ESCAPE_DIALECTS = ("mysql", "mariadb")


def bind_positional(
    sql: str,
    params: Sequence[Any],
    backslash_escapes: bool = False,
) -> TextClause:
    """Convert a ``?``-placeholder statement into a bound text() clause.

    Placeholders inside quoted literals are left alone, and colons inside
    literals are escaped so they are not mistaken for named binds.

    Args:
        sql: Statement using ``?`` for each positional parameter
        params: Values, one per placeholder
        backslash_escapes: Treat a backslash inside a literal as escaping the
            next character (MySQL/MariaDB string syntax)

    Returns:
        A TextClause with bind parameters p0..pN attached

    Raises:
        QueryError: If the placeholder count does not match len(params)
    """
    out = []
    index = 0
    quote: Optional[str] = None
    i = 0
    length = len(sql)
    while i < length:
        ch = sql[i]
        if quote:
            if backslash_escapes and ch == "\\" and quote != "`" and i + 1 < length:
                escaped = sql[i + 1]
                out.append(ch)
                out.append("\\:" if escaped == ":" else escaped)
                i += 2
                continue
            if ch == ":":
                out.append("\\:")
            else:
                out.append(ch)
            if ch == quote:
                # Doubled quote is an escaped quote inside the literal
                if i + 1 < length and sql[i + 1] == quote:
                    out.append(quote)
                    i += 2
                    continue
                quote = None
        elif ch in _QUOTES:
            quote = ch
            out.append(ch)
        elif ch == "?":
            out.append(f":p{index}")
            index += 1
        else:
            out.append(ch)
        i += 1

    if index != len(params):
        raise QueryError(
            f"Statement has {index} placeholder(s) but {len(params)} parameter(s) were given",
            sql=sql,
        )

    clause = text("".join(out))
    if params:
        # bindparam() infers a type from each value (e.g. Decimal -> Numeric)
        clause = clause.bindparams(*[bindparam(f"p{n}", value) for n, value in enumerate(params)])
    return clause


def _materialize(result: CursorResult) -> TabularResult:
    if not result.returns_rows:
        return TabularResult(columns=())
    columns = list(result.keys())
    rows = result.fetchall()
    return TabularResult.from_rows(columns, rows)


class TabularQueryEngine:
    """
    Runs ad hoc SQL against the managed connection.

    Each operation has a narrow contract: reads return a TabularResult,
    writes return an affected-row count, scalar returns one value, and
    execute_batch applies a list of writes all-or-nothing.

    Usage:
        engine = TabularQueryEngine(manager)
        result = engine.query("SELECT account_type, COUNT(*) AS n FROM accounts GROUP BY account_type")
        total = engine.scalar("SELECT SUM(balance) FROM accounts")
        engine.execute_parameterized("UPDATE accounts SET status = ? WHERE account_id = ?", "Closed", 7)
    """

    def __init__(self, connections: ConnectionManager):
        self._connections = connections

    @property
    def connections(self) -> ConnectionManager:
        return self._connections

    @property
    def dialect_name(self) -> str:
        """Backend name of the managed connection (mysql, sqlite, ...)."""
        return self._connections.dialect_name

    # =========================================================================
    # Error handling
    # =========================================================================

    def _translate(
        self,
        error: SQLAlchemyError,
        sql: str,
        position: Optional[int] = None,
        total: Optional[int] = None,
    ) -> Exception:
        if isinstance(error, DBAPIError) and error.connection_invalidated:
            return DatabaseConnectionError(
                f"Connection to {self._connections.url} was lost: {error.orig}",
                uri=self._connections.url,
            )
        detail = error.orig if isinstance(error, DBAPIError) else error
        if position is not None:
            message = f"Batch rolled back, statement {position} of {total} failed: {detail}"
        else:
            message = f"Query failed: {detail}"
        return QueryError(message, sql=sql, position=position)

    def _bind(self, sql: str, params: Sequence[Any]) -> TextClause:
        return bind_positional(
            sql, params, backslash_escapes=self.dialect_name in _BACKSLASH_ESCAPE_DIALECTS
        )

    @staticmethod
    def _rollback(conn: Connection) -> None:
        try:
            conn.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback after failed statement also failed: {e}")

    @contextmanager
    def _statement(self, sql: str) -> Generator[Connection, None, None]:
        """Borrow the connection for one auto-committed statement."""
        with self._connections.connection() as conn:
            logger.debug(f"Executing: {preview_sql(sql)}")
            try:
                yield conn
                conn.commit()
            except SQLAlchemyError as e:
                self._rollback(conn)
                raise self._translate(e, sql) from e
            except BaseException:
                self._rollback(conn)
                raise

    # =========================================================================
    # Reads
    # =========================================================================

    def query(self, sql: str) -> TabularResult:
        """
        Run a read statement and return all rows.

        Args:
            sql: Complete SQL statement (no placeholders)

        Returns:
            TabularResult with columns in projection order

        Raises:
            QueryError: If the store rejects the statement
            DatabaseConnectionError: If no connection can be established
        """
        with self._statement(sql) as conn:
            return _materialize(conn.exec_driver_sql(sql, execution_options=_RAW))

    def query_parameterized(self, sql: str, *params: Any) -> TabularResult:
        """
        Run a read statement with ``?`` placeholders bound to params.

        This is the path for any value that came from user input or a file.
        """
        clause = self._bind(sql, params)
        with self._statement(sql) as conn:
            return _materialize(conn.execute(clause))

    def scalar(self, sql: str) -> Any:
        """First column of the first row, or None if the query returns no rows."""
        with self._statement(sql) as conn:
            row = conn.exec_driver_sql(sql, execution_options=_RAW).first()
            return None if row is None else row[0]

    # =========================================================================
    # Writes
    # =========================================================================

    def execute(self, sql: str) -> int:
        """Run a write statement (auto-committed) and return rows affected."""
        with self._statement(sql) as conn:
            return conn.exec_driver_sql(sql, execution_options=_RAW).rowcount

    def execute_parameterized(self, sql: str, *params: Any) -> int:
        """Run a write statement with ``?`` placeholders bound to params."""
        clause = self._bind(sql, params)
        with self._statement(sql) as conn:
            return conn.execute(clause).rowcount

    def execute_batch(self, statements: Sequence[str]) -> list[int]:
        """
        Apply write statements as one all-or-nothing unit.

        Autocommit is suspended for the duration of the batch and restored
        to its previous setting on every exit path.

        Args:
            statements: SQL write statements, applied in order

        Returns:
            Affected-row count per statement

        Raises:
            QueryError: Naming the first failing statement; nothing from the
                batch is committed
        """
        statements = list(statements)
        if not statements:
            return []

        total = len(statements)
        with self._connections.connection() as conn:
            prior = conn.get_execution_options().get("isolation_level", AUTOCOMMIT)
            conn.execution_options(isolation_level=conn.default_isolation_level)
            counts: list[int] = []
            position = 0
            try:
                with conn.begin():
                    for position, statement in enumerate(statements, start=1):
                        logger.debug(f"Batch {position}/{total}: {preview_sql(statement)}")
                        result = conn.exec_driver_sql(statement, execution_options=_RAW)
                        counts.append(result.rowcount)
            except SQLAlchemyError as e:
                logger.warning(f"Batch of {total} statements rolled back at statement {position}: {e}")
                failed = max(position, 1)
                raise self._translate(e, statements[failed - 1], failed, total) from e
            finally:
                if not conn.closed and not conn.invalidated:
                    conn.execution_options(isolation_level=prior)

        logger.debug(f"Batch of {total} statements committed")
        return counts
