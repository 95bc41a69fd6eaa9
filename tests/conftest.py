# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Shared fixtures: a file-backed SQLite bank database per test."""

from pathlib import Path
from typing import Generator

import pytest

from ledgerstat.core.config import (
    CONFIG_PATH_ENV,
    DB_PASSWORD_ENV,
    DB_URI_ENV,
    DB_USER_ENV,
    Config,
    DatabaseConfig,
)
from ledgerstat.storage.connection import ConnectionManager
from ledgerstat.storage.query_engine import TabularQueryEngine

BANK_SCHEMA = [
    """
    CREATE TABLE accounts (
        account_id INTEGER PRIMARY KEY,
        customer_name TEXT,
        email TEXT,
        phone TEXT,
        account_type TEXT,
        balance NUMERIC,
        date_opened TEXT,
        branch TEXT,
        status TEXT
    )
    """,
    """
    CREATE TABLE transactions (
        transaction_id INTEGER PRIMARY KEY,
        account_id INTEGER,
        transaction_type TEXT,
        amount NUMERIC,
        transaction_date TEXT,
        description TEXT,
        status TEXT
    )
    """,
    """
    CREATE TABLE loans (
        loan_id INTEGER PRIMARY KEY,
        account_id INTEGER,
        loan_type TEXT,
        amount NUMERIC,
        interest_rate NUMERIC,
        duration_months INTEGER,
        start_date TEXT,
        status TEXT,
        monthly_payment NUMERIC
    )
    """,
    """
    CREATE TABLE cards (
        card_id INTEGER PRIMARY KEY,
        account_id INTEGER,
        card_type TEXT,
        card_number TEXT,
        expiry_date TEXT,
        credit_limit NUMERIC,
        status TEXT
    )
    """,
]

ACCOUNTS_HEADER = "account_id,customer_name,email,phone,account_type,balance,date_opened,branch,status"
TRANSACTIONS_HEADER = "transaction_id,account_id,transaction_type,amount,transaction_date,description,status"
LOANS_HEADER = (
    "loan_id,account_id,loan_type,amount,interest_rate,duration_months,"
    "start_date,status,monthly_payment"
)
CARDS_HEADER = "card_id,account_id,card_type,card_number,expiry_date,credit_limit,status"


def write_csv(path: Path, header: str, *rows: str) -> Path:
    """Write a header line plus data lines to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's LEDGERSTAT_* settings out of the tests."""
    for var in (CONFIG_PATH_ENV, DB_URI_ENV, DB_USER_ENV, DB_PASSWORD_ENV):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "bank.db"


@pytest.fixture
def db_config(db_path) -> DatabaseConfig:
    return DatabaseConfig(uri=f"sqlite:///{db_path}", probe_timeout_seconds=2)


@pytest.fixture
def manager(db_config) -> Generator[ConnectionManager, None, None]:
    mgr = ConnectionManager(db_config)
    yield mgr
    mgr.release()


@pytest.fixture
def engine(manager) -> TabularQueryEngine:
    return TabularQueryEngine(manager)


@pytest.fixture
def bank_db(engine) -> TabularQueryEngine:
    """Engine over a database with the four bank tables created (empty)."""
    engine.execute_batch(BANK_SCHEMA)
    return engine


@pytest.fixture
def config_file(tmp_path, db_path) -> Path:
    """YAML config pointing at the test database."""
    path = tmp_path / "config.yaml"
    path.write_text(f"database:\n  uri: sqlite:///{db_path}\n  probe_timeout_seconds: 2\n")
    return path


@pytest.fixture
def config(config_file) -> Config:
    return Config.from_yaml(config_file)
