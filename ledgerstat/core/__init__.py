# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Core models, errors and configuration."""

from .config import Config, DatabaseConfig, ImportConfig
from .errors import (
    DatabaseConnectionError,
    DirectoryError,
    FormatError,
    LedgerStatError,
    QueryError,
)
from .models import (
    FileImportStatus,
    ImportOutcome,
    ImportRecord,
    ImportStatus,
    TabularResult,
)

__all__ = [
    # Config
    "Config",
    "DatabaseConfig",
    "ImportConfig",
    # Errors
    "LedgerStatError",
    "DatabaseConnectionError",
    "QueryError",
    "FormatError",
    "DirectoryError",
    # Models
    "TabularResult",
    "ImportRecord",
    "ImportStatus",
    "FileImportStatus",
    "ImportOutcome",
]
