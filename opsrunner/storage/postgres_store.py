# ==============================================
# PostgresStore
# ==============================================
#
# PURPOSE:
#   Owns the connection to PostgreSQL and runs SQL for operations.
#
# WHY THIS CLASS EXISTS:
#   Same seam as MongoStore: operations receive the store as an
#   argument and call execute() / fetch_all() on it.
#   The connection runs in autocommit mode, so every statement is
#   its own transaction. Some statements (CREATE SUBSCRIPTION,
#   REFRESH ... CONCURRENTLY) refuse to run inside a transaction block.
#
# CLASS: PostgresStore
# --------------------
#   Stateful — holds connection to PostgreSQL.
#
#   Constructor:
#   ------------
#   - __init__(host, port, user, password, database, connect_timeout=10)
#       Store connection params. Don't connect yet.
#
#   Methods:
#   --------
#   - connect() -> None
#       Establish connection. Raises StoreConnectionError.
#
#   - disconnect() -> None
#       Close connection cleanly. Safe to call when never connected.
#
#   - execute(query: str, params: tuple = None) -> int
#       Execute one statement. Return affected row count.
#
#   - fetch_all(query: str, params: tuple = None) -> list[dict]
#       Execute SELECT and return rows as dicts.
#
#   - is_connection_error(exc) -> bool
#       True when a psycopg OperationalError left the connection
#       closed or broken.
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with PostgresStore(...) as db:` usage.
#
# ==============================================

from typing import Any, Optional, cast

import psycopg
from psycopg.rows import dict_row

from opsrunner.config import PostgresConfig
from opsrunner.errors import StoreConnectionError, StoreNotConnectedError


class PostgresStore:
    name = "PostgreSQL"

    def __init__(self, host, port, user, password, database, connect_timeout: int = 10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.connect_timeout = connect_timeout
        self.connection: Optional[psycopg.Connection] = None

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresStore":
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            connect_timeout=config.connect_timeout
        )

    def connect(self) -> None:
        # Establish connection to PostgreSQL
        try:
            self.connection = psycopg.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                dbname=self.database,
                connect_timeout=self.connect_timeout,
                autocommit=True,
                row_factory=dict_row,
            )
            print(f"Connected to PostgreSQL database '{self.database}' at {self.host}:{self.port}.")
        except psycopg.OperationalError as e:
            print(f"Could not connect to PostgreSQL: {e}")
            self.disconnect()
            raise StoreConnectionError(
                f"Could not connect to PostgreSQL at {self.host}:{self.port}: {e}",
                {"store": self.name, "host": self.host, "port": self.port, "database": self.database}
            ) from e

    def disconnect(self) -> None:
        # Close connection cleanly
        if self.connection:
            self.connection.close()
            print("Disconnected from PostgreSQL.")
            self.connection = None

    def _require_connection(self) -> psycopg.Connection:
        if self.connection is None:
            raise StoreNotConnectedError(self.name)
        return self.connection

    def execute(self, query: str, params: tuple | None = None) -> int:
        # Execute one statement, return affected row count
        with self._require_connection().cursor() as cursor:
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: tuple | None = None) -> list[dict]:
        # Execute SELECT and return rows as dicts
        with self._require_connection().cursor() as cursor:
            cursor.execute(query, params)
            return cast(list[dict[str, Any]], cursor.fetchall())

    def is_connection_error(self, exc: BaseException) -> bool:
        if not isinstance(exc, psycopg.OperationalError):
            return False
        return self.connection is None or self.connection.closed or self.connection.broken

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
