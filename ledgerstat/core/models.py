# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Core data structures handed across the query and import boundaries."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Sequence

# One parsed line of a delimited file: declared column name -> trimmed raw text
ImportRecord = dict[str, str]

REPORT_HEADER = "=== {label} Import Results ==="
REPORT_FOOTER = "=== Import Complete ==="


def unique_columns(names: Sequence[str]) -> tuple[str, ...]:
    """Make projected column labels unique, preserving order.

    The first occurrence keeps its label; later duplicates get _2, _3, ...
    """
    seen: dict[str, int] = {}
    taken = set(names)
    result = []
    for name in names:
        if name not in seen:
            seen[name] = 1
            result.append(name)
            continue
        counter = seen[name]
        while True:
            counter += 1
            candidate = f"{name}_{counter}"
            if candidate not in taken:
                break
        seen[name] = counter
        taken.add(candidate)
        result.append(candidate)
    return tuple(result)


@dataclass(frozen=True)
class TabularResult:
    """Fully materialized query result.

    Column names follow projection order; every row has exactly one value per
    column. Instances are immutable and safe to share with any number of
    read-only consumers (tables, charts, exports).
    """
    columns: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...] = ()

    @classmethod
    def from_rows(cls, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> "TabularResult":
        """Build a result from driver output, normalizing containers to tuples."""
        cols = unique_columns(list(columns))
        width = len(cols)
        materialized = []
        for index, row in enumerate(rows):
            values = tuple(row)
            if len(values) != width:
                raise ValueError(
                    f"Row {index} has {len(values)} values, expected {width} for columns {cols}"
                )
            materialized.append(values)
        return cls(columns=cols, rows=tuple(materialized))

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        return iter(self.rows)

    def column(self, name: str) -> list[Any]:
        """All values of one column, in row order."""
        try:
            index = self.columns.index(name)
        except ValueError:
            raise KeyError(f"Unknown column '{name}'. Available: {', '.join(self.columns)}") from None
        return [row[index] for row in self.rows]

    def as_dicts(self) -> list[dict[str, Any]]:
        """Rows as column-name -> value mappings."""
        return [dict(zip(self.columns, row)) for row in self.rows]

    def to_dataframe(self):
        """Copy the result into a pandas DataFrame for chart/report consumers."""
        import pandas as pd

        return pd.DataFrame(list(self.rows), columns=list(self.columns))


class ImportStatus(Enum):
    """Outcome of importing a single file."""
    IMPORTED = "imported"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class FileImportStatus:
    """Per-file line of an import report."""
    file_name: str
    status: ImportStatus
    entity_label: Optional[str] = None
    records: int = 0
    error: Optional[str] = None

    def describe(self) -> str:
        """Render this entry as a single report line."""
        if self.status == ImportStatus.IMPORTED:
            return f"{self.entity_label}: {self.records} records imported"
        if self.status == ImportStatus.SKIPPED:
            return f"Skipped (unknown type): {self.file_name}"
        line = f"Error importing {self.file_name}: {self.error}"
        if self.records:
            line += f" ({self.records} records committed before failure)"
        return line


@dataclass
class ImportOutcome:
    """Accumulated results of a directory scan.

    Built incrementally while files are processed, then rendered once via
    `summary`.
    """
    directory: str
    files: list[FileImportStatus] = field(default_factory=list)
    extension_label: str = "CSV"

    def add(self, status: FileImportStatus) -> None:
        self.files.append(status)

    @property
    def imported(self) -> list[FileImportStatus]:
        return [f for f in self.files if f.status == ImportStatus.IMPORTED]

    @property
    def failed(self) -> list[FileImportStatus]:
        return [f for f in self.files if f.status == ImportStatus.FAILED]

    @property
    def skipped(self) -> list[FileImportStatus]:
        return [f for f in self.files if f.status == ImportStatus.SKIPPED]

    @property
    def total_records(self) -> int:
        return sum(f.records for f in self.files)

    def counts_by_entity(self) -> Mapping[str, int]:
        counts: dict[str, int] = {}
        for f in self.imported:
            counts[f.entity_label] = counts.get(f.entity_label, 0) + f.records
        return counts

    @property
    def summary(self) -> str:
        """Human-readable report, one line per file in listing order."""
        if not self.files:
            return f"No {self.extension_label} files found in directory: {self.directory}"
        lines = [REPORT_HEADER.format(label=self.extension_label), ""]
        lines.extend(f.describe() for f in self.files)
        lines.extend(["", REPORT_FOOTER])
        return "\n".join(lines)
