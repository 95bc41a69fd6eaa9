# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Bulk CSV ingestion into the bank schema.

Files are parsed with pandas (every field read as text), each record is
coerced to the entity's declared column types, and written with a single
parameterized upsert. Rows commit one at a time: a failure part-way through
a file leaves the earlier rows of that file in place, and re-importing the
same file converges on the same end state.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

import pandas as pd

from ledgerstat.catalog.entities import (
    BANK_ROUTES,
    EntitySpec,
    ImportRoute,
    classify,
    entities_for,
)
from ledgerstat.core.config import ImportConfig
from ledgerstat.core.errors import DirectoryError, FormatError
from ledgerstat.core.models import (
    FileImportStatus,
    ImportOutcome,
    ImportRecord,
    ImportStatus,
)
from ledgerstat.storage.query_engine import TabularQueryEngine

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _normalize(name: str) -> str:
    return str(name).strip().lower()


class BulkRecordImporter:
    """
    Imports delimited files into their target tables.

    Usage:
        importer = BulkRecordImporter(engine)
        count = importer.import_file("data/accounts.csv", "accounts")
        print(importer.import_all_from_directory("data/"))
    """

    def __init__(
        self,
        engine: TabularQueryEngine,
        config: Optional[ImportConfig] = None,
        routes: Sequence[ImportRoute] = BANK_ROUTES,
    ):
        self.engine = engine
        self.config = config or ImportConfig()
        self.routes = tuple(routes)
        self._entities = entities_for(self.routes)

    @property
    def entities(self) -> dict[str, EntitySpec]:
        """Importable entities keyed by name."""
        return dict(self._entities)

    def resolve_entity(self, entity: Union[str, EntitySpec]) -> EntitySpec:
        if isinstance(entity, EntitySpec):
            return entity
        try:
            return self._entities[entity.strip().lower()]
        except KeyError:
            raise ValueError(
                f"Unknown entity '{entity}'. Known: {', '.join(sorted(self._entities))}"
            ) from None

    # =========================================================================
    # Parsing
    # =========================================================================

    def read_header(self, path: PathLike) -> list[str]:
        """Column names from the header line, whitespace-trimmed."""
        frame = pd.read_csv(path, nrows=0, dtype=str, encoding=self.config.encoding)
        return [str(c).strip() for c in frame.columns]

    def iter_records(self, path: PathLike, entity: EntitySpec) -> Iterator[tuple[int, ImportRecord]]:
        """
        Yield (line_number, record) for each data line of a file.

        Header names are matched to the entity's declared columns
        case-insensitively. Values are trimmed; short rows yield empty
        strings for the missing fields. Line numbers are physical lines of
        the file: blank rows are skipped but still counted, and a quoted
        value spanning several lines advances the count accordingly.

        Raises:
            FormatError: If a declared column is absent from the header
        """
        path = Path(path)
        header = self.read_header(path)
        positions = {_normalize(name): index for index, name in enumerate(header)}
        missing = [c for c in entity.columns if _normalize(c) not in positions]
        if missing:
            raise FormatError(
                f"missing column(s) for {entity.name}: {', '.join(missing)}",
                source=path.name,
            )
        layout = [(c, positions[_normalize(c)]) for c in entity.columns]

        next_line = 2  # header is line 1
        with pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            index_col=False,
            encoding=self.config.encoding,
            chunksize=self.config.chunk_size,
        ) as reader:
            for chunk in reader:
                for values in chunk.itertuples(index=False, name=None):
                    line = next_line
                    texts = [v for v in values if isinstance(v, str)]
                    # Quoted fields may span several physical lines
                    next_line += 1 + sum(v.count("\n") for v in texts)
                    if not any(v.strip() for v in texts):
                        continue
                    record: ImportRecord = {}
                    for column, index in layout:
                        value = values[index]
                        record[column] = value.strip() if isinstance(value, str) else ""
                    yield line, record

    # =========================================================================
    # Import
    # =========================================================================

    def _upsert_records(self, path: Path, entity: EntitySpec) -> Iterator[int]:
        """Write records one by one, yielding each committed line number."""
        sql = entity.upsert_sql(self.engine.dialect_name)
        for line, record in self.iter_records(path, entity):
            params = entity.coerce(record, source=path.name, line=line)
            self.engine.execute_parameterized(sql, *params)
            yield line

    def import_file(self, path: PathLike, entity: Union[str, EntitySpec]) -> int:
        """
        Upsert every record of one file into the entity's table.

        Args:
            path: Delimited file with a header line
            entity: Target EntitySpec or entity name

        Returns:
            Number of records written

        Raises:
            FormatError: If a field cannot be coerced or a column is missing
            QueryError: If the store rejects a row
        """
        path = Path(path)
        spec = self.resolve_entity(entity)
        count = sum(1 for _ in self._upsert_records(path, spec))
        logger.info(f"Imported {count} {spec.name} records from {path.name}")
        return count

    def _import_one(self, path: Path, outcome: ImportOutcome) -> None:
        entity = classify(path.name, self.routes)
        if entity is None:
            logger.warning(f"Skipping {path.name}: no importer matches the file name")
            outcome.add(FileImportStatus(path.name, ImportStatus.SKIPPED))
            return

        count = 0
        try:
            for _ in self._upsert_records(path, entity):
                count += 1
        except Exception as e:
            logger.warning(f"Error importing {path.name} after {count} records: {e}")
            outcome.add(FileImportStatus(
                path.name,
                ImportStatus.FAILED,
                entity_label=entity.label,
                records=count,
                error=str(e),
            ))
            return

        logger.info(f"Imported {count} {entity.name} records from {path.name}")
        outcome.add(FileImportStatus(
            path.name, ImportStatus.IMPORTED, entity_label=entity.label, records=count,
        ))

    def list_files(self, directory: PathLike) -> list[Path]:
        """Files in a directory carrying the configured extension, sorted by name."""
        directory = Path(directory)
        if not directory.exists() or not directory.is_dir():
            raise DirectoryError(str(directory))
        suffix = self.config.extension.lower()
        return sorted(
            (p for p in directory.iterdir() if p.is_file() and p.name.lower().endswith(suffix)),
            key=lambda p: p.name,
        )

    def import_directory(self, directory: PathLike) -> ImportOutcome:
        """
        Import every matching file in a directory, routing by file name.

        A failure in one file is recorded in the outcome and the scan moves
        on to the next file.

        Raises:
            DirectoryError: If the path does not exist or is not a directory
        """
        files = self.list_files(directory)
        outcome = ImportOutcome(directory=str(directory), extension_label=self.config.label)
        if not files:
            logger.info(f"No {self.config.label} files found in {directory}")
            return outcome

        logger.info(f"Importing {len(files)} file(s) from {directory}")
        for path in files:
            self._import_one(path, outcome)
        logger.info(
            f"Directory import finished: {outcome.total_records} records, "
            f"{len(outcome.failed)} failed, {len(outcome.skipped)} skipped"
        )
        return outcome

    def import_all_from_directory(self, directory: PathLike) -> str:
        """Import a directory and return the human-readable report."""
        return self.import_directory(directory).summary

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_headers(self, path: PathLike, expected: Sequence[str]) -> bool:
        """
        Check a file's header line against expected column names.

        Comparison is by set (order-insensitive), case-insensitive and
        whitespace-trimmed. Read failures return False rather than raising.
        """
        try:
            header = self.read_header(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Error validating {path}: {e}")
            return False

        if len(header) != len(expected):
            return False
        present = {_normalize(name) for name in header}
        return all(_normalize(name) in present for name in expected)
