# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Importable entity definitions and filename routing.

Each EntitySpec describes one target table: its declared columns with their
types, the primary identifier used for conflict detection, and the subset of
columns an upsert is allowed to overwrite. Columns outside that subset are
never changed by a re-import.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from ledgerstat.core.errors import FormatError, QueryError

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_DECIMAL_PATTERN = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class FieldType(Enum):
    """Declared type of an imported column."""
    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXT = "text"  # Free text and dates (dates are not validated here)


@dataclass(frozen=True)
class FieldSpec:
    """One declared column of an importable entity."""
    name: str
    type: FieldType = FieldType.TEXT

    def coerce(self, value: str, source: str = "", line: int = 0) -> Any:
        """Convert trimmed raw text to this field's Python type.

        Raises:
            FormatError: If an INTEGER or DECIMAL field is not numeric
        """
        # Plain ASCII digits only: no "_" separators, NaN or Infinity
        if self.type == FieldType.INTEGER:
            if not _INTEGER_PATTERN.fullmatch(value):
                raise FormatError(
                    f"column '{self.name}' expects an integer, got {value!r}",
                    source=source, line=line, column=self.name,
                )
            return int(value)
        if self.type == FieldType.DECIMAL:
            if not _DECIMAL_PATTERN.fullmatch(value):
                raise FormatError(
                    f"column '{self.name}' expects a decimal, got {value!r}",
                    source=source, line=line, column=self.name,
                )
            return Decimal(value)
        return value


def _integer(name: str) -> FieldSpec:
    return FieldSpec(name, FieldType.INTEGER)


def _decimal(name: str) -> FieldSpec:
    return FieldSpec(name, FieldType.DECIMAL)


def _text(name: str) -> FieldSpec:
    return FieldSpec(name, FieldType.TEXT)


@dataclass(frozen=True)
class EntitySpec:
    """
    Target table definition for the bulk importer.

    Attributes:
        name: Short identifier (e.g. "accounts")
        label: Human-readable name used in import reports (e.g. "Accounts")
        table: Target table name
        key: Primary identifier column used for conflict detection
        fields: Declared columns, in insert order
        update_columns: Columns overwritten when the key already exists
    """
    name: str
    label: str
    table: str
    key: str
    fields: tuple[FieldSpec, ...]
    update_columns: tuple[str, ...]

    def __post_init__(self):
        names = self.columns
        if self.key not in names:
            raise ValueError(f"Entity '{self.name}': key '{self.key}' is not a declared column")
        unknown = [c for c in self.update_columns if c not in names]
        if unknown:
            raise ValueError(f"Entity '{self.name}': update columns not declared: {unknown}")
        if self.key in self.update_columns:
            raise ValueError(f"Entity '{self.name}': key '{self.key}' cannot be updated on conflict")

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def coerce(self, record: Mapping[str, str], source: str = "", line: int = 0) -> tuple:
        """Convert a parsed record into insert parameters, in column order."""
        missing = [f.name for f in self.fields if f.name not in record]
        if missing:
            raise FormatError(
                f"missing column(s) for {self.name}: {', '.join(missing)}",
                source=source, line=line,
            )
        return tuple(f.coerce(record[f.name], source=source, line=line) for f in self.fields)

    def upsert_sql(self, dialect_name: str) -> str:
        """
        Build the parameterized insert-or-update statement for a dialect.

        Args:
            dialect_name: SQLAlchemy backend name (mysql, mariadb, sqlite, postgresql)

        Returns:
            SQL with one ``?`` placeholder per declared column

        Raises:
            QueryError: If the dialect has no known upsert syntax
        """
        column_list = ", ".join(self.columns)
        placeholders = ", ".join("?" for _ in self.fields)
        insert = f"INSERT INTO {self.table} ({column_list}) VALUES ({placeholders})"

        if dialect_name in ("mysql", "mariadb"):
            updates = ", ".join(f"{c}=VALUES({c})" for c in self.update_columns)
            return f"{insert} ON DUPLICATE KEY UPDATE {updates}"
        if dialect_name in ("sqlite", "postgresql"):
            updates = ", ".join(f"{c}=excluded.{c}" for c in self.update_columns)
            return f"{insert} ON CONFLICT ({self.key}) DO UPDATE SET {updates}"
        raise QueryError(f"No upsert syntax known for dialect '{dialect_name}' (entity {self.name})")


ACCOUNTS = EntitySpec(
    name="accounts",
    label="Accounts",
    table="accounts",
    key="account_id",
    fields=(
        _integer("account_id"),
        _text("customer_name"),
        _text("email"),
        _text("phone"),
        _text("account_type"),
        _decimal("balance"),
        _text("date_opened"),
        _text("branch"),
        _text("status"),
    ),
    update_columns=("customer_name", "balance"),
)

TRANSACTIONS = EntitySpec(
    name="transactions",
    label="Transactions",
    table="transactions",
    key="transaction_id",
    fields=(
        _integer("transaction_id"),
        _integer("account_id"),
        _text("transaction_type"),
        _decimal("amount"),
        _text("transaction_date"),
        _text("description"),
        _text("status"),
    ),
    update_columns=("status",),
)

LOANS = EntitySpec(
    name="loans",
    label="Loans",
    table="loans",
    key="loan_id",
    fields=(
        _integer("loan_id"),
        _integer("account_id"),
        _text("loan_type"),
        _decimal("amount"),
        _decimal("interest_rate"),
        _integer("duration_months"),
        _text("start_date"),
        _text("status"),
        _decimal("monthly_payment"),
    ),
    update_columns=("status",),
)

CARDS = EntitySpec(
    name="cards",
    label="Cards",
    table="cards",
    key="card_id",
    fields=(
        _integer("card_id"),
        _integer("account_id"),
        _text("card_type"),
        _text("card_number"),
        _text("expiry_date"),
        _decimal("credit_limit"),
        _text("status"),
    ),
    update_columns=("status",),
)

BANK_ENTITIES: dict[str, EntitySpec] = {
    e.name: e for e in (ACCOUNTS, TRANSACTIONS, LOANS, CARDS)
}


@dataclass(frozen=True)
class ImportRoute:
    """Filename rule: route to `entity` if `keyword` is present and `excluded` is not."""
    keyword: str
    entity: EntitySpec
    excluded: Optional[str] = None

    def matches(self, file_name: str) -> bool:
        name = file_name.lower()
        if self.keyword not in name:
            return False
        return self.excluded is None or self.excluded not in name


# Evaluated in order; first match wins
BANK_ROUTES: tuple[ImportRoute, ...] = (
    ImportRoute("account", ACCOUNTS, excluded="transaction"),
    ImportRoute("transaction", TRANSACTIONS),
    ImportRoute("loan", LOANS),
    ImportRoute("card", CARDS),
)


def classify(file_name: str, routes: Sequence[ImportRoute] = BANK_ROUTES) -> Optional[EntitySpec]:
    """Pick the target entity for a file by name, or None if unrecognized."""
    for route in routes:
        if route.matches(file_name):
            return route.entity
    return None


def entities_for(routes: Sequence[ImportRoute]) -> dict[str, EntitySpec]:
    """Entities reachable through a routing table, keyed by name."""
    return {route.entity.name: route.entity for route in routes}
