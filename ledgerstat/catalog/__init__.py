# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Importable entity definitions and the bulk importer."""

from .entities import (
    ACCOUNTS,
    BANK_ENTITIES,
    BANK_ROUTES,
    CARDS,
    LOANS,
    TRANSACTIONS,
    EntitySpec,
    FieldSpec,
    FieldType,
    ImportRoute,
    classify,
)
from .importer import BulkRecordImporter

__all__ = [
    "EntitySpec",
    "FieldSpec",
    "FieldType",
    "ImportRoute",
    "ACCOUNTS",
    "TRANSACTIONS",
    "LOANS",
    "CARDS",
    "BANK_ENTITIES",
    "BANK_ROUTES",
    "classify",
    "BulkRecordImporter",
]
