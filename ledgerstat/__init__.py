# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""LedgerStat - SQL query engine and bulk CSV loader for bank ledgers.

This package provides a shared, thread-safe database connection, a generic
tabular query engine, and an importer that upserts delimited files into the
bank schema (accounts, transactions, loans, cards).

Submodules:
- core: Models, errors and configuration
- storage: Connection management and SQL execution
- catalog: Importable entity definitions and the bulk importer

Main classes:
- ConnectionManager: Owner of the single database connection
- TabularQueryEngine: Ad hoc reads, writes and transactional batches
- BulkRecordImporter: Directory and single-file CSV ingestion
- Config: Configuration loading from YAML and environment
"""

# Catalog
from ledgerstat.catalog.entities import (
    BANK_ENTITIES,
    BANK_ROUTES,
    EntitySpec,
    FieldSpec,
    FieldType,
    ImportRoute,
    classify,
)
from ledgerstat.catalog.importer import BulkRecordImporter
# Core models and configuration
from ledgerstat.core.config import Config, DatabaseConfig, ImportConfig
from ledgerstat.core.errors import (
    DatabaseConnectionError,
    DirectoryError,
    FormatError,
    LedgerStatError,
    QueryError,
)
from ledgerstat.core.models import (
    FileImportStatus,
    ImportOutcome,
    ImportStatus,
    TabularResult,
)
# Storage
from ledgerstat.storage.connection import ConnectionManager
from ledgerstat.storage.query_engine import TabularQueryEngine

__version__ = "0.1.0"

__all__ = [
    # Core
    "Config",
    "DatabaseConfig",
    "ImportConfig",
    "LedgerStatError",
    "DatabaseConnectionError",
    "QueryError",
    "FormatError",
    "DirectoryError",
    "TabularResult",
    "ImportStatus",
    "FileImportStatus",
    "ImportOutcome",
    # Storage
    "ConnectionManager",
    "TabularQueryEngine",
    # Catalog
    "EntitySpec",
    "FieldSpec",
    "FieldType",
    "ImportRoute",
    "BANK_ENTITIES",
    "BANK_ROUTES",
    "classify",
    "BulkRecordImporter",
]
