# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Command-line interface for LedgerStat."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ledgerstat.catalog.importer import BulkRecordImporter
from ledgerstat.core.config import Config
from ledgerstat.core.errors import (
    DatabaseConnectionError,
    DirectoryError,
    QueryError,
)
from ledgerstat.storage.connection import ConnectionManager
from ledgerstat.storage.query_engine import TabularQueryEngine

console = Console()

DEBUG_LOG = Path(".ledgerstat/debug.log")


def config_option(func):
    """Shared --config/-c option (optional; falls back to env and defaults)."""
    return click.option(
        "--config", "-c",
        type=click.Path(exists=True, dir_okay=False),
        help="Path to config YAML file.",
    )(func)


def debug_option(func):
    return click.option(
        "--debug",
        is_flag=True,
        help="Enable debug logging (written to .ledgerstat/debug.log).",
    )(func)


def _enable_debug_logging() -> None:
    # Write debug logs to file (keeps console output clean)
    DEBUG_LOG.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(DEBUG_LOG, mode="w")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    logging.getLogger("ledgerstat").addHandler(file_handler)
    logging.getLogger("ledgerstat").setLevel(logging.DEBUG)
    console.print(f"[dim]Debug logs: {DEBUG_LOG}[/dim]")


def _load_config(config: Optional[str], debug: bool) -> Config:
    if debug:
        _enable_debug_logging()
    try:
        return Config.load(config)
    except Exception as e:
        console.print(f"[red]Config error:[/red] {escape(str(e))}")
        sys.exit(1)


def _format_value(value) -> str:
    return "NULL" if value is None else str(value)


@click.group()
@click.version_option(version="0.1.0", prog_name="ledgerstat")
def cli():
    """LedgerStat - SQL queries and bulk CSV loading for bank ledgers.

    \b
    Quick start:
        ledgerstat init
        ledgerstat check -c config.yaml
        ledgerstat import data/ -c config.yaml
        ledgerstat query "SELECT COUNT(*) FROM accounts" --scalar
    """
    pass


@cli.command()
@config_option
@debug_option
def check(config: Optional[str], debug: bool):
    """Test the database connection.

    \b
    Examples:
        ledgerstat check -c config.yaml
    """
    cfg = _load_config(config, debug)
    with ConnectionManager(cfg.database) as manager:
        console.print(f"Database: {manager.url}")
        if manager.probe():
            console.print("[green]OK[/green] Connection established")
        else:
            console.print("[red]FAIL[/red] Could not connect")
            sys.exit(1)


@cli.command(name="import")
@click.argument("directory", type=click.Path())
@config_option
@debug_option
def import_directory(directory: str, config: Optional[str], debug: bool):
    """Import every CSV file in a directory.

    Files are routed to a table by name (accounts, transactions, loans,
    cards). Unrecognized files are skipped; a failing file does not stop
    the rest of the scan.

    \b
    Examples:
        ledgerstat import data/ -c config.yaml
    """
    cfg = _load_config(config, debug)
    with ConnectionManager(cfg.database) as manager:
        importer = BulkRecordImporter(TabularQueryEngine(manager), cfg.imports)
        try:
            with console.status("[bold]Importing...", spinner="dots"):
                outcome = importer.import_directory(directory)
        except (DirectoryError, DatabaseConnectionError) as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)

    console.print(outcome.summary, markup=False, highlight=False, soft_wrap=True)


@cli.command(name="import-file")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--entity", "-e",
    required=True,
    help="Target entity (accounts, transactions, loans, cards).",
)
@config_option
@debug_option
def import_file(file: str, entity: str, config: Optional[str], debug: bool):
    """Import a single CSV file into one entity's table.

    \b
    Examples:
        ledgerstat import-file exports/q3.csv --entity transactions
    """
    cfg = _load_config(config, debug)
    with ConnectionManager(cfg.database) as manager:
        importer = BulkRecordImporter(TabularQueryEngine(manager), cfg.imports)
        try:
            with console.status(f"[bold]Importing {escape(Path(file).name)}...", spinner="dots"):
                count = importer.import_file(file, entity)
        except (ValueError, QueryError, DatabaseConnectionError) as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)

    console.print(f"[green]Imported[/green] {count} records from {Path(file).name}")


@cli.command(name="validate-headers")
@click.argument("file", type=click.Path())
@click.option("--entity", "-e", help="Validate against an entity's declared columns.")
@click.option("--columns", help="Comma-separated list of expected column names.")
@config_option
@debug_option
def validate_headers(
    file: str,
    entity: Optional[str],
    columns: Optional[str],
    config: Optional[str],
    debug: bool,
):
    """Check a CSV file's header line against expected columns.

    \b
    Examples:
        ledgerstat validate-headers accounts.csv --entity accounts
        ledgerstat validate-headers export.csv --columns id,name,amount
    """
    if bool(entity) == bool(columns):
        raise click.UsageError("Pass exactly one of --entity or --columns.")

    cfg = _load_config(config, debug)
    importer = BulkRecordImporter(TabularQueryEngine(ConnectionManager(cfg.database)), cfg.imports)
    if entity:
        try:
            expected = list(importer.resolve_entity(entity).columns)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--entity")
    else:
        expected = [c.strip() for c in columns.split(",") if c.strip()]

    if importer.validate_headers(file, expected):
        console.print(f"[green]Valid[/green] {escape(file)}")
    else:
        console.print(f"[red]Invalid[/red] {escape(file)}: expected {', '.join(expected)}")
        sys.exit(1)


@cli.command()
@click.argument("sql")
@click.option("--scalar", is_flag=True, help="Print only the first value of the first row.")
@click.option("--limit", "-n", type=click.IntRange(min=0), help="Display at most N rows.")
@config_option
@debug_option
def query(sql: str, scalar: bool, limit: Optional[int], config: Optional[str], debug: bool):
    """Run a SQL statement and display the result.

    \b
    Examples:
        ledgerstat query "SELECT account_type, SUM(balance) FROM accounts GROUP BY account_type"
        ledgerstat query "SELECT COUNT(*) FROM loans WHERE status = 'Active'" --scalar
    """
    cfg = _load_config(config, debug)
    with ConnectionManager(cfg.database) as manager:
        engine = TabularQueryEngine(manager)
        try:
            if scalar:
                console.print(_format_value(engine.scalar(sql)), markup=False, highlight=False)
                return
            result = engine.query(sql)
        except (QueryError, DatabaseConnectionError) as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)

    if not result.columns:
        console.print("[dim]Statement returned no rows.[/dim]")
        return

    rows = result.rows if limit is None else result.rows[:limit]
    table = Table(show_header=True)
    for column in result.columns:
        table.add_column(column, style="cyan" if column == result.columns[0] else None)
    for row in rows:
        table.add_row(*(_format_value(v) for v in row))
    console.print(table)

    shown = f"{len(rows)} of {result.row_count}" if len(rows) < result.row_count else str(result.row_count)
    console.print(f"[dim]{shown} row(s)[/dim]")


@cli.command()
def init():
    """Create a sample config file.

    Generates config.yaml in the current directory with example settings.
    """
    sample_config = '''# LedgerStat Configuration

# Database connection (any SQLAlchemy URI; MySQL via PyMySQL by default)
database:
  uri: mysql+pymysql://localhost:3306/bank_data_analysis
  username: root
  password: ${LEDGERSTAT_DB_PASSWORD}

  # Seconds allowed for connecting and for the connection check
  probe_timeout_seconds: 5

  # Log every statement (noisy)
  # echo: true

# CSV ingestion
imports:
  extension: .csv
  encoding: utf-8
  chunk_size: 1000
'''

    config_path = Path("config.yaml")

    if config_path.exists():
        if not click.confirm("config.yaml already exists. Overwrite?"):
            console.print("[dim]Aborted.[/dim]")
            return

    config_path.write_text(sample_config)
    console.print(f"[green]Created:[/green] {config_path}")
    console.print("\n[dim]Edit the file to point at your database.[/dim]")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
