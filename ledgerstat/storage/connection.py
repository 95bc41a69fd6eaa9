# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Thread-safe management of the single database connection.

One ConnectionManager is built at process start and handed to every
component that talks to the store. It owns at most one live SQLAlchemy
Connection, created on first demand and re-created only when the held one
is closed, invalidated, or fails a liveness probe.

Usage:
    manager = ConnectionManager(config.database)

    # Borrow the shared connection for one operation (holds the lock)
    with manager.connection() as conn:
        conn.exec_driver_sql("SELECT 1")

    # UI-style "test connection"
    if not manager.probe():
        ...

    manager.release()
"""

import atexit
import logging
import socket
import threading
import weakref
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from ledgerstat.core.config import DatabaseConfig
from ledgerstat.core.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)

AUTOCOMMIT = "AUTOCOMMIT"
PROBE_SQL = "SELECT 1"

# Track all live managers so they can be released before process exit
_all_managers: weakref.WeakSet["ConnectionManager"] = weakref.WeakSet()


def close_all_managers() -> None:
    """Release every live ConnectionManager.

    Registered with atexit so the held connection is closed at shutdown even
    when the caller never reaches its own cleanup.
    """
    for manager in list(_all_managers):
        manager.release()


atexit.register(close_all_managers)


@contextmanager
def _socket_deadline(conn: Connection, seconds: float) -> Generator[None, None, None]:
    """Bound blocking socket I/O on the driver connection for the duration of the block.

    Applies to drivers that keep a Python socket on the DBAPI connection
    (PyMySQL). A read that exceeds the deadline fails and the driver reports
    the connection as lost. Other drivers are left untouched.
    """
    driver = conn.connection.driver_connection
    sock = getattr(driver, "_sock", None)
    if not isinstance(sock, socket.socket):
        yield
        return

    previous = sock.gettimeout()
    sock.settimeout(seconds)
    try:
        yield
    finally:
        # The driver drops its socket after a timed-out read
        if getattr(driver, "_sock", None) is sock:
            sock.settimeout(previous)


def _connect_args(backend: str, timeout: int) -> dict:
    """Driver keyword arguments that bound connect time."""
    if backend in ("mysql", "mariadb", "postgresql"):
        return {"connect_timeout": timeout}
    if backend == "sqlite":
        # Access is serialized by the manager's lock, so cross-thread use is safe
        return {"timeout": timeout, "check_same_thread": False}
    return {}


class ConnectionManager:
    """Owner of the process's single database connection.

    All public methods are safe to call from multiple threads. Connection
    creation happens under a reentrant lock, so racing first callers share
    one underlying connection.

    Attributes:
        _config: Endpoint and credential settings, read once at construction
        _engine: Lazily created SQLAlchemy engine
        _connection: The held connection, or None
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._lock = threading.RLock()
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        _all_managers.add(self)

    @property
    def url(self) -> str:
        """Connection URI with the password masked."""
        return self._config.display_uri()

    @property
    def username(self) -> Optional[str]:
        """Configured database user (from config or embedded in the URI)."""
        if self._config.username:
            return self._config.username
        try:
            return make_url(self._config.uri).username
        except ArgumentError:
            return None

    @property
    def dialect_name(self) -> str:
        """Backend name (mysql, sqlite, postgresql, ...) derived from the URI."""
        try:
            return make_url(self._config.uri).get_backend_name()
        except ArgumentError as e:
            raise DatabaseConnectionError(
                f"Invalid database URI {self.url}: {e}", uri=self.url
            ) from e

    @property
    def is_connected(self) -> bool:
        """True if a connection is currently held and not known to be closed."""
        conn = self._connection
        return conn is not None and not conn.closed and not conn.invalidated

    def _get_engine(self) -> Engine:
        if self._engine is None:
            uri = self._config.get_connection_uri()
            backend = self.dialect_name
            try:
                self._engine = create_engine(
                    uri,
                    echo=self._config.echo,
                    connect_args=_connect_args(backend, self._config.probe_timeout_seconds),
                )
            except ImportError as e:
                raise DatabaseConnectionError(
                    f"Database driver for '{backend}' could not be loaded: {e}", uri=self.url
                ) from e
            except (ArgumentError, SQLAlchemyError) as e:
                raise DatabaseConnectionError(
                    f"Could not configure engine for {self.url}: {e}", uri=self.url
                ) from e
        return self._engine

    def _connect(self) -> Connection:
        engine = self._get_engine()
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(
                f"Could not connect to {self.url}: {getattr(e, 'orig', None) or e}", uri=self.url
            ) from e

        # Single statements commit on their own; batches switch this off temporarily
        try:
            conn.execution_options(isolation_level=AUTOCOMMIT)
        except SQLAlchemyError as e:
            conn.close()
            raise DatabaseConnectionError(
                f"Could not enable autocommit on {self.url}: {e}", uri=self.url
            ) from e

        logger.info(f"Database connection established: {self.url}")
        return conn

    def _is_alive(self, conn: Connection) -> bool:
        """Run the liveness check, bounded by probe_timeout_seconds where the driver allows."""
        if conn.closed or conn.invalidated:
            return False
        try:
            with _socket_deadline(conn, self._config.probe_timeout_seconds):
                conn.exec_driver_sql(PROBE_SQL).fetchall()
            conn.commit()
            return True
        except SQLAlchemyError as e:
            logger.debug(f"Liveness probe failed for {self.url}: {e}")
            return False

    def acquire(self) -> Connection:
        """Return a live connection, creating or replacing it if needed.

        Returns:
            The shared SQLAlchemy Connection (in autocommit mode)

        Raises:
            DatabaseConnectionError: If the driver cannot be loaded or the
                endpoint refuses the connection
        """
        with self._lock:
            conn = self._connection
            if conn is not None and self._is_alive(conn):
                return conn

            if conn is not None:
                logger.debug(f"Held connection to {self.url} is no longer valid, reconnecting")
                self._discard(conn, invalidate=True)

            self._connection = self._connect()
            return self._connection

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """Borrow the shared connection for one operation (holds lock for duration)."""
        with self._lock:
            yield self.acquire()

    def probe(self) -> bool:
        """Check that the store is reachable. Never raises.

        Returns:
            True if a live connection could be acquired and answered a probe
        """
        try:
            with self._lock:
                conn = self.acquire()
                return self._is_alive(conn)
        except Exception as e:
            logger.warning(f"Connection test failed for {self.url}: {e}")
            return False

    def _discard(self, conn: Connection, invalidate: bool = False) -> None:
        """Drop the held connection.

        With invalidate=True the DBAPI connection is discarded rather than
        returned to the engine's pool, so a failed connection is never
        handed out again.
        """
        self._connection = None
        try:
            if invalidate and not conn.closed and not conn.invalidated:
                conn.invalidate()
            conn.close()
        except SQLAlchemyError as e:
            logger.warning(f"Error closing database connection: {e}")

    def release(self) -> None:
        """Close the held connection and the engine's pool. Idempotent."""
        with self._lock:
            conn = self._connection
            if conn is not None:
                self._discard(conn)
                logger.info(f"Database connection closed: {self.url}")
            if self._engine is not None:
                self._engine.dispose()

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
