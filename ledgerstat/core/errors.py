# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Exception hierarchy shared by the storage and import layers."""

from typing import Optional

# Longest SQL preview carried in error messages
SQL_PREVIEW_CHARS = 200


def preview_sql(sql: str, limit: int = SQL_PREVIEW_CHARS) -> str:
    """Collapse whitespace and truncate SQL for log lines and error text."""
    flat = " ".join(sql.split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3] + "..."


class LedgerStatError(Exception):
    """Base class for all ledgerstat errors."""


class DatabaseConnectionError(LedgerStatError):
    """A connection to the backing store could not be established or validated."""

    def __init__(self, message: str, uri: Optional[str] = None):
        super().__init__(message)
        self.uri = uri


class QueryError(LedgerStatError):
    """The backing store rejected a statement.

    Attributes:
        sql: Preview of the offending statement (may be None for batch-level errors)
        position: 1-based index of the failing statement within a batch
    """

    def __init__(self, message: str, sql: Optional[str] = None, position: Optional[int] = None):
        self.sql = preview_sql(sql) if sql else None
        self.position = position
        if self.sql:
            message = f"{message} [sql: {self.sql}]"
        super().__init__(message)


class FormatError(LedgerStatError, ValueError):
    """A record field could not be coerced to its declared type."""

    def __init__(
        self,
        message: str,
        source: str = "",
        line: int = 0,
        column: Optional[str] = None,
    ):
        self.source = source
        self.line = line
        self.column = column
        location = source
        if line:
            location = f"{location} line {line}" if location else f"line {line}"
        super().__init__(f"{location}: {message}" if location else message)


class DirectoryError(LedgerStatError):
    """An import target path is missing or is not a directory."""

    def __init__(self, path: str):
        super().__init__(f"Invalid directory path: {path}")
        self.path = path
