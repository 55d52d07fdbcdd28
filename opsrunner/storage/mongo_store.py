# ==============================================
# MongoStore
# ==============================================
#
# PURPOSE:
#   Owns the connection to MongoDB and hands out database /
#   collection handles to operations.
#
# WHY THIS CLASS EXISTS:
#   Operations never reach for a module-level client. They receive
#   the store as an argument and ask it for the handles they need,
#   so a test can pass in a fake store instead.
#
# CLASS: MongoStore
# -----------------
#   Stateful — holds connection to MongoDB.
#
#   Constructor:
#   ------------
#   - __init__(host, port, database, user=None, password=None,
#              server_selection_timeout_ms=5000)
#       Store connection params. Don't connect yet.
#
#   Methods:
#   --------
#   - connect() -> None
#       Establish connection and ping. Raises StoreConnectionError.
#
#   - disconnect() -> None
#       Close connection. Safe to call when never connected.
#
#   - database / admin (properties)
#       The working database ("weatherDB") and the admin database.
#
#   - collection(name: str) -> Collection
#
#   - admin_command(command: dict) -> dict
#       Run a command against the admin database.
#
#   - is_connection_error(exc) -> bool
#       True for pymongo ConnectionFailure (and subclasses).
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoStore(...) as store:` usage.
#
# ==============================================

from typing import Optional
from urllib.parse import quote_plus

from pymongo import MongoClient as PyMongoClient
from pymongo.errors import ConfigurationError, ConnectionFailure, OperationFailure

from opsrunner.config import MongoConfig
from opsrunner.errors import StoreConnectionError, StoreNotConnectedError


class MongoStore:
    name = "MongoDB"

    def __init__(self, host, port, database, user=None, password=None,
                 server_selection_timeout_ms: int = 5000):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.database_name = database
        self.user = user
        self.password = password
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.client: Optional[PyMongoClient] = None

    @classmethod
    def from_config(cls, config: MongoConfig) -> "MongoStore":
        return cls(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            password=config.password,
            server_selection_timeout_ms=config.server_selection_timeout_ms
        )

    @property
    def uri(self) -> str:
        if self.user and self.password:
            return (f"mongodb://{quote_plus(self.user)}:{quote_plus(self.password)}"
                    f"@{self.host}:{self.port}/{self.database_name}")
        return f"mongodb://{self.host}:{self.port}/{self.database_name}"

    def connect(self) -> None:
        # Establish connection to MongoDB.
        try:
            self.client = PyMongoClient(
                self.uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms
            )
            # Test connection
            self.client.admin.command("ping")
            print(f"Connected to MongoDB at {self.host}:{self.port}.")
        except ConnectionFailure as e:
            print(f"Could not connect to MongoDB: {e}")
            self.disconnect()
            raise StoreConnectionError(
                f"Could not connect to MongoDB at {self.host}:{self.port}: {e}",
                {"store": self.name, "host": self.host, "port": self.port}
            ) from e
        except OperationFailure as e:
            print(f"Authentication failed: {e}")
            self.disconnect()
            raise StoreConnectionError(
                f"Authentication to MongoDB failed: {e}",
                {"store": self.name, "user": self.user, "code": e.code}
            ) from e
        except ConfigurationError as e:
            self.disconnect()
            raise StoreConnectionError(
                f"Invalid MongoDB configuration: {e}",
                {"store": self.name}
            ) from e

    def disconnect(self) -> None:
        # Close connection.
        if self.client:
            self.client.close()
            print("Disconnected from MongoDB.")
            self.client = None

    def _require_client(self) -> PyMongoClient:
        if self.client is None:
            raise StoreNotConnectedError(self.name)
        return self.client

    @property
    def database(self):
        return self._require_client()[self.database_name]

    @property
    def admin(self):
        return self._require_client().admin

    def collection(self, name: str):
        return self.database[name]

    def admin_command(self, command: dict) -> dict:
        return self.admin.command(command)

    def is_connection_error(self, exc: BaseException) -> bool:
        return isinstance(exc, ConnectionFailure)

    def __enter__(self):
        # For `with MongoStore(...) as store:` usage.
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
